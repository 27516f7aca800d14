"""Chunked transcription pipeline.

A run walks ``received -> splitting -> split_complete -> transcribing -> complete``
(``error`` is reachable from every non-terminal state) and reports each step as a
progress event. The run is a generator so the HTTP layer can flush every event
the moment it is produced; exactly one terminal event is yielded, always last.
"""

import logging
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from app.config import get_settings
from app.exceptions import RenderingFailed, SegmentationFailed, TranscriptionFailed
from app.schemas.progress import (
    Complete,
    Error,
    ProgressEventBase,
    SplitComplete,
    Splitting,
    Transcribing,
)
from app.services.document import DocumentRenderer
from app.services.segmenter import Segmenter, get_segmenter
from app.services.storage import ArtifactStore, StoredUpload, get_artifact_store
from app.services.transcription import Transcriber, get_transcriber

logger = logging.getLogger("splitscribe")


class PipelineState(str, Enum):
    RECEIVED = "received"
    SPLITTING = "splitting"
    SPLIT_COMPLETE = "split_complete"
    TRANSCRIBING = "transcribing"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_STATES = {PipelineState.COMPLETE, PipelineState.ERROR}

_TRANSITIONS = {
    PipelineState.RECEIVED: {PipelineState.SPLITTING, PipelineState.SPLIT_COMPLETE},
    PipelineState.SPLITTING: {PipelineState.SPLIT_COMPLETE},
    PipelineState.SPLIT_COMPLETE: {PipelineState.TRANSCRIBING},
    PipelineState.TRANSCRIBING: {PipelineState.TRANSCRIBING, PipelineState.COMPLETE},
    PipelineState.COMPLETE: set(),
    PipelineState.ERROR: set(),
}


def progress_percent(index: int, total: int) -> int:
    """round(index / total * 100), halves rounded up."""
    return (index * 200 + total) // (2 * total)


@dataclass
class PipelineRun:
    """Mutable state of one run. Never shared between runs."""

    upload: StoredUpload
    state: PipelineState = PipelineState.RECEIVED
    group_dir: Path | None = None
    segments: list[Path] = field(default_factory=list)
    fragments: list[str] = field(default_factory=list)
    current: int = 0
    started_at: float = field(default_factory=time.time)

    def advance(self, state: PipelineState) -> None:
        if state is not PipelineState.ERROR and state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid pipeline transition {self.state.value} -> {state.value}")
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Pipeline already finished ({self.state.value})")
        logger.debug("Run %s: %s -> %s", self.upload.name, self.state.value, state.value)
        self.state = state


class TranscriptionPipeline:
    """Segmenter -> per-segment transcription -> assembly -> optional document."""

    def __init__(
        self,
        store: ArtifactStore,
        segmenter: Segmenter,
        transcriber: Transcriber,
        renderer: DocumentRenderer | None = None,
    ) -> None:
        self.store = store
        self.segmenter = segmenter
        self.transcriber = transcriber
        self.renderer = renderer

    def run(self, upload: StoredUpload) -> Iterator[ProgressEventBase]:
        """Process one upload, yielding progress events.

        Never raises: any failure becomes the terminal ``error`` event. If the
        consumer stops iterating, the run is abandoned before the next stage.
        """
        run = PipelineRun(upload=upload)
        stages = self._stages(run)
        try:
            while True:
                try:
                    event = next(stages)
                except StopIteration:
                    return
                except Exception as e:
                    logger.exception("Unexpected error processing %s", upload.name)
                    yield self._fail(run, f"Error processing file: {e}")
                    return
                yield event
        finally:
            stages.close()
            if run.state not in TERMINAL_STATES:
                logger.warning("Run for %s abandoned in state %s", upload.name, run.state.value)

    def _stages(self, run: PipelineRun) -> Iterator[ProgressEventBase]:
        upload = run.upload
        run.group_dir = self.store.create_group(upload.base_name)

        if self.segmenter.needs_split(upload.path):
            run.advance(PipelineState.SPLITTING)
            yield Splitting(message="Splitting audio file...")
            try:
                segments = self.segmenter.segment(upload.path, run.group_dir)
            except SegmentationFailed as e:
                logger.error("Segmentation failed for %s: %s", upload.name, e)
                yield self._fail(run, f"Error splitting audio: {e}")
                return
            if not segments:
                yield self._fail(run, "Error splitting audio: segmentation produced no segments")
                return
            message = f"Audio split into {len(segments)} parts"
        else:
            segments = [upload.path]
            message = "Small file, no splitting required"

        run.segments = segments
        total = len(segments)
        run.advance(PipelineState.SPLIT_COMPLETE)
        yield SplitComplete(chunk_count=total, message=message)

        for index, segment in enumerate(segments, start=1):
            run.advance(PipelineState.TRANSCRIBING)
            run.current = index
            yield Transcribing(
                progress=progress_percent(index, total),
                message=f"Transcribing part {index} of {total}...",
            )
            try:
                text = self.transcriber.transcribe(segment)
            except TranscriptionFailed as e:
                logger.error("Transcription of part %d/%d of %s failed: %s", index, total, upload.name, e)
                yield self._fail(run, f"Error transcribing part {index} of {total}: {e}")
                return
            run.fragments.append(text)

        transcription = " ".join(run.fragments)
        pdf_filename = self._render(run, transcription)
        duration = self.segmenter.probe_duration(upload.path) or 0

        complete = Complete(
            transcription=transcription,
            chunk_count=total,
            duration=round(duration, 2),
            pdf_filename=pdf_filename,
            message="Transcription completed",
        )
        run.advance(PipelineState.COMPLETE)
        logger.info(
            "Transcription of %s completed: %d parts in %.2fs",
            upload.name,
            total,
            time.time() - run.started_at,
        )
        yield complete

    def _render(self, run: PipelineRun, transcription: str) -> str | None:
        if self.renderer is None:
            return None
        try:
            path = self.renderer.render(transcription, run.upload.original_filename, run.upload.base_name)
        except RenderingFailed as e:
            logger.error("Document rendering failed for %s: %s", run.upload.name, e)
            return None
        return path.name

    @staticmethod
    def _fail(run: PipelineRun, message: str) -> Error:
        if run.state not in TERMINAL_STATES:
            run.advance(PipelineState.ERROR)
        return Error(message=message)


def get_pipeline() -> TranscriptionPipeline:
    """Build the pipeline from the configured collaborators."""
    settings = get_settings()
    store = get_artifact_store()
    renderer = DocumentRenderer(store) if settings.RENDER_DOCUMENTS else None
    return TranscriptionPipeline(store, get_segmenter(), get_transcriber(), renderer)
