"""API routers for the drug interaction engine."""

from medrefer_ddi.api.alerts import router as alerts_router
from medrefer_ddi.api.interactions import router as interactions_router

__all__ = [
    "alerts_router",
    "interactions_router",
]
