"""Upload management endpoints."""

from app.routers.collections import collection_router
from app.services.storage import Collection

router = collection_router(Collection.UPLOADS, "file", "Uploads")
