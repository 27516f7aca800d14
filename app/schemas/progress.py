"""Progress events streamed to the caller of a transcription run.

Events are plain pydantic models tagged by ``status``. They are turned into the
wire format (one compact JSON object per line, camelCase keys) only at the
HTTP boundary by :func:`encode_event`; consumers reassemble lines from an
arbitrary chunked byte stream with :class:`ProgressDecoder`.
"""

import codecs
import json
from collections.abc import Iterable, Iterator
from typing import Annotated, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

MEDIA_TYPE = "application/x-ndjson"


class ProgressEventBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    terminal: ClassVar[bool] = False

    message: str


class Splitting(ProgressEventBase):
    status: Literal["splitting"] = "splitting"


class SplitComplete(ProgressEventBase):
    status: Literal["split_complete"] = "split_complete"
    chunk_count: int = Field(ge=0)


class Transcribing(ProgressEventBase):
    status: Literal["transcribing"] = "transcribing"
    progress: int = Field(ge=0, le=100)


class Complete(ProgressEventBase):
    terminal: ClassVar[bool] = True

    status: Literal["complete"] = "complete"
    transcription: str
    chunk_count: int
    duration: float = 0
    pdf_filename: str | None = None


class Error(ProgressEventBase):
    terminal: ClassVar[bool] = True

    status: Literal["error"] = "error"


ProgressEvent = Annotated[
    Splitting | SplitComplete | Transcribing | Complete | Error,
    Field(discriminator="status"),
]

_event_adapter: TypeAdapter[ProgressEvent] = TypeAdapter(ProgressEvent)


def encode_event(event: ProgressEventBase) -> str:
    """Serialize one event as a newline-terminated JSON line."""
    return event.model_dump_json(by_alias=True, exclude_none=True) + "\n"


def encode_stream(events: Iterable[ProgressEventBase]) -> Iterator[str]:
    for event in events:
        yield encode_event(event)


def parse_event(line: str | bytes) -> ProgressEventBase:
    """Parse one JSON line into its event variant. Raises ValueError on malformed input."""
    try:
        return _event_adapter.validate_python(json.loads(line))
    except ValueError as e:
        raise ValueError(f"Malformed progress event: {line!r}") from e


class ProgressDecoder:
    """Incrementally split a chunked stream into events.

    A line cut in half by the transport is held back until the rest of it
    arrives; multi-byte UTF-8 sequences split across chunks are handled too.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")()

    def feed(self, chunk: str | bytes) -> list[ProgressEventBase]:
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return [parse_event(line) for line in lines if line.strip()]

    def close(self) -> list[ProgressEventBase]:
        """Flush whatever is left once the stream has ended."""
        rest = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        return [parse_event(rest)] if rest.strip() else []


def check_stream(events: list[ProgressEventBase]) -> None:
    """Verify the channel contract for one finished run. Raises ValueError."""
    terminals = [i for i, event in enumerate(events) if event.terminal]
    if len(terminals) != 1 or terminals[0] != len(events) - 1:
        raise ValueError("stream must end with exactly one complete or error event")

    progress = [event.progress for event in events if isinstance(event, Transcribing)]
    if any(later < earlier for earlier, later in zip(progress, progress[1:])):
        raise ValueError(f"progress went backwards: {progress}")

    if isinstance(events[-1], Complete):
        announced = [event.chunk_count for event in events if isinstance(event, SplitComplete)]
        if announced != [len(progress)] or events[-1].chunk_count != len(progress):
            raise ValueError(f"chunkCount {announced} does not match {len(progress)} transcribing events")
        if progress[-1:] != [100]:
            raise ValueError("last transcribing event before complete must report 100")
