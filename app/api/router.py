"""
Main API router.
"""

from fastapi import APIRouter

from app.api.auth import router as auth_router
from app.api.generate import router as generate_router
from app.api.generations import router as generations_router
from app.api.credits import router as credits_router
from app.api.payments import router as payments_router
from app.api.users import router as users_router
from app.api.admin import router as admin_router

# Create main API router
api_router = APIRouter(prefix="/api")

api_router.include_router(
    auth_router.router,
    prefix="/auth",
    tags=["Authentication"]
)

api_router.include_router(
    generate_router.router,
    prefix="/generate",
    tags=["Code Generation"]
)

api_router.include_router(
    generations_router.router,
    prefix="/generations",
    tags=["History"]
)

api_router.include_router(
    credits_router.router,
    prefix="/credits",
    tags=["Credits"]
)

api_router.include_router(
    payments_router.router,
    prefix="/payments",
    tags=["Payments"]
)

api_router.include_router(
    users_router.router,
    prefix="/users",
    tags=["Users"]
)

api_router.include_router(
    admin_router.router,
    prefix="/admin",
    tags=["Admin"]
)
