"""Segment group (chunk folder) management endpoints."""

from fastapi import Depends
from fastapi.responses import FileResponse

from app.routers.collections import collection_router
from app.schemas.artifacts import ArtifactItem, GroupMembersResponse
from app.services.storage import ArtifactStore, Collection, get_artifact_store

router = collection_router(Collection.CHUNKS, "chunk folder", "Chunks")


@router.get("/{group}/files", response_model=GroupMembersResponse)
def list_group_files(group: str, store: ArtifactStore = Depends(get_artifact_store)) -> GroupMembersResponse:
    """List the segments of a chunk folder in playback order."""
    members = store.list_group_members(group)
    return GroupMembersResponse(
        group=group,
        count=len(members),
        items=[ArtifactItem.from_info(info) for info in members],
    )


@router.get("/{group}/files/{name}")
def download_group_file(group: str, name: str, store: ArtifactStore = Depends(get_artifact_store)) -> FileResponse:
    """Download one segment."""
    path = store.group_member_path(group, name)
    return FileResponse(path, filename=name, media_type="application/octet-stream")
