"""Tasks API

Provides endpoints for task CRUD and CSV bulk upload.
"""

from .routes import router

__all__ = ["router"]
