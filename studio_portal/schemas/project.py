from typing import List

from studio_portal.models.project import ProjectRead
from studio_portal.models.sub_project import SubProjectRead
from studio_portal.services.task_tree import Progress


# Properties to return for a single project page
class ProjectDetail(ProjectRead):
    sub_projects: List[SubProjectRead] = []
    progress: Progress = Progress()
