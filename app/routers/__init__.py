"""API routers."""

from app.routers.chunks import router as chunks_router
from app.routers.documents import router as documents_router
from app.routers.transcribe import router as transcribe_router
from app.routers.uploads import router as uploads_router

__all__ = ["transcribe_router", "uploads_router", "chunks_router", "documents_router"]
