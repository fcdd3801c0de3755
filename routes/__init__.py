"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.uploads import router as uploads_router
from routes.candidates import router as candidates_router

__all__ = [
    "uploads_router",
    "candidates_router",
]
