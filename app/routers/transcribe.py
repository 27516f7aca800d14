"""Streaming transcription endpoint."""

import logging

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import StreamingResponse

from app.config import get_settings
from app.exceptions import InvalidInput
from app.rate_limit import limiter
from app.schemas.artifacts import ErrorResponse
from app.schemas.progress import MEDIA_TYPE, encode_stream
from app.services.pipeline import TranscriptionPipeline, get_pipeline
from app.services.storage import ArtifactStore, get_artifact_store

logger = logging.getLogger("splitscribe")

router = APIRouter(prefix="/api", tags=["Transcription"])


@router.post(
    "/transcribe",
    response_class=StreamingResponse,
    responses={
        200: {"content": {MEDIA_TYPE: {}}, "description": "One JSON progress event per line"},
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
    },
)
@limiter.limit(get_settings().TRANSCRIBE_RATE_LIMIT)
async def transcribe_audio(
    request: Request,
    audio: UploadFile | None = File(None),
    store: ArtifactStore = Depends(get_artifact_store),
    pipeline: TranscriptionPipeline = Depends(get_pipeline),
) -> StreamingResponse:
    """Upload an audio file and stream transcription progress as JSON lines."""
    if audio is None or not audio.filename:
        raise InvalidInput("No file received")

    store.validate_upload_metadata(audio.filename, audio.content_type)
    upload = await store.store_upload(audio)
    logger.info("Starting transcription of %s (%d bytes)", upload.name, upload.size)

    # sync generator: Starlette drives it in a worker thread and flushes each line as it is yielded
    return StreamingResponse(
        encode_stream(pipeline.run(upload)),
        media_type=MEDIA_TYPE,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
