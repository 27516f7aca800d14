"""Consumer side of the progress channel."""

from collections.abc import Iterator
from pathlib import Path

import httpx

from app.schemas.progress import ProgressDecoder, ProgressEventBase
from app.services.transcription import CONTENT_TYPES


def stream_transcription(
    client: httpx.Client, path: str | Path, endpoint: str = "/api/transcribe"
) -> Iterator[ProgressEventBase]:
    """Upload ``path`` and yield progress events as they arrive.

    ``client`` is any httpx client pointed at the service (its ``base_url`` is
    used for relative endpoints). Raises httpx.HTTPStatusError when the upload
    is rejected before a stream is opened.
    """
    path = Path(path)
    decoder = ProgressDecoder()
    content_type = CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")
    with open(path, "rb") as f:
        files = {"audio": (path.name, f, content_type)}
        with client.stream("POST", endpoint, files=files) as response:
            if not response.is_success:
                response.read()
                response.raise_for_status()
            for chunk in response.iter_bytes():
                yield from decoder.feed(chunk)
    yield from decoder.close()
