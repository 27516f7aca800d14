"""Pydantic schemas for the artifact management endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.services.storage import ArtifactInfo, format_bytes


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ArtifactItem(CamelModel):
    name: str
    size: int
    size_formatted: str
    created_at: datetime
    modified_at: datetime

    @classmethod
    def from_info(cls, info: ArtifactInfo) -> "ArtifactItem":
        return cls(
            name=info.name,
            size=info.size,
            size_formatted=format_bytes(info.size),
            created_at=info.created_at,
            modified_at=info.modified_at,
        )


class ArtifactListResponse(CamelModel):
    success: bool = True
    count: int
    total_size: int
    total_size_formatted: str
    items: list[ArtifactItem]

    @classmethod
    def from_infos(cls, infos: list[ArtifactInfo]) -> "ArtifactListResponse":
        total = sum(info.size for info in infos)
        return cls(
            count=len(infos),
            total_size=total,
            total_size_formatted=format_bytes(total),
            items=[ArtifactItem.from_info(info) for info in infos],
        )


class GroupMembersResponse(CamelModel):
    success: bool = True
    group: str
    count: int
    items: list[ArtifactItem]


class DeleteResponse(CamelModel):
    success: bool = True
    message: str


class DeleteAllResponse(CamelModel):
    success: bool = True
    count: int
    failed: int = 0
    message: str


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
