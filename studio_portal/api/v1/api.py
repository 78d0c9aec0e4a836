from fastapi import APIRouter
from studio_portal.api.v1.endpoints import (
    health, clients, projects, sub_projects, budgets, transactions, dashboard
)

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])

# Resource endpoints
api_router.include_router(clients.router, prefix="/clients", tags=["clients"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(sub_projects.router, prefix="/sub-projects", tags=["sub-projects"])
api_router.include_router(budgets.router, prefix="/budgets", tags=["budgets"])
api_router.include_router(transactions.router, prefix="/transactions", tags=["transactions"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
