from fastapi import APIRouter
from app.routers import appraisals, notifications

# Centralized API router hub; main.py only imports this one.
api_router = APIRouter()

api_router.include_router(appraisals.router, tags=["Appraisals"])
api_router.include_router(notifications.router, tags=["Notifications"])
