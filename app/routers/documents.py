"""Rendered document endpoints."""

from fastapi import Depends
from fastapi.responses import FileResponse

from app.routers.collections import collection_router
from app.services.storage import ArtifactStore, Collection, get_artifact_store

router = collection_router(Collection.DOCUMENTS, "document", "Documents")


@router.get("/{name:path}")
def download_document(name: str, store: ArtifactStore = Depends(get_artifact_store)) -> FileResponse:
    """Download a rendered PDF."""
    path = store.get_document(name)
    return FileResponse(path, filename=path.name, media_type="application/pdf")
