"""API routers for all endpoints."""

from onboarding_api.routers import dashboard, system

__all__ = [
    "dashboard",
    "system",
]
