from .user import Caller, UserRole
from .client import Client
from .project import Project, ProjectClientLink, ProjectStatus
from .sub_project import SubProject, SubProjectStatus
from .transaction import Transaction, TransactionType, TransactionStatus
from .budget import Budget, BudgetItem, BudgetType
from .content import Content, Stage, TaskItem, Checklist, ChecklistItem, Comment, Attachment

__all__ = [
    "Caller", "UserRole",
    "Client",
    "Project", "ProjectClientLink", "ProjectStatus",
    "SubProject", "SubProjectStatus",
    "Transaction", "TransactionType", "TransactionStatus",
    "Budget", "BudgetItem", "BudgetType",
    "Content", "Stage", "TaskItem", "Checklist", "ChecklistItem", "Comment", "Attachment",
]
