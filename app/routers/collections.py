"""List / delete endpoints shared by every artifact collection."""

from fastapi import APIRouter, Depends

from app.schemas.artifacts import ArtifactListResponse, DeleteAllResponse, DeleteResponse, ErrorResponse
from app.services.storage import ArtifactStore, Collection, get_artifact_store

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def collection_router(collection: Collection, label: str, tag: str) -> APIRouter:
    """Build the list, delete-one and delete-all routes for ``collection``."""
    router = APIRouter(prefix=f"/api/{collection.value}", tags=[tag], responses=ERROR_RESPONSES)

    @router.get("", response_model=ArtifactListResponse, name=f"list_{collection.value}")
    def list_items(store: ArtifactStore = Depends(get_artifact_store)) -> ArtifactListResponse:
        return ArtifactListResponse.from_infos(store.list_items(collection))

    @router.delete("", response_model=DeleteAllResponse, name=f"delete_all_{collection.value}")
    def delete_all(store: ArtifactStore = Depends(get_artifact_store)) -> DeleteAllResponse:
        deleted, failed = store.delete_all(collection)
        message = f"{deleted} {label}s deleted"
        if failed:
            message += f", {failed} could not be deleted"
        return DeleteAllResponse(count=deleted, failed=failed, message=message)

    # :path so names containing separators reach validation instead of 404ing in routing
    @router.delete("/{name:path}", response_model=DeleteResponse, name=f"delete_{collection.value}")
    def delete_one(name: str, store: ArtifactStore = Depends(get_artifact_store)) -> DeleteResponse:
        store.delete_item(collection, name)
        return DeleteResponse(message=f"{label.capitalize()} {name} deleted")

    return router
