"""
Main API router for version 1.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import events, webhooks

api_router = APIRouter()

api_router.include_router(events.router)
api_router.include_router(webhooks.router)
