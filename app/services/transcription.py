"""Speech-to-text clients: one blocking call per audio segment."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

import httpx

from app.config import get_settings
from app.exceptions import TranscriptionFailed

logger = logging.getLogger("splitscribe")

CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".m4a": "audio/mp4",
    ".mp4": "audio/mp4",
    ".wav": "audio/wav",
    ".webm": "audio/webm",
    ".ogg": "audio/ogg",
    ".opus": "audio/ogg",
    ".flac": "audio/flac",
    ".aac": "audio/aac",
}


class Transcriber(ABC):
    """Transcribes one audio segment. No retries."""

    @abstractmethod
    def transcribe(self, segment: Path) -> str:
        """Return the text for ``segment``. Raises TranscriptionFailed."""
        raise NotImplementedError


class OpenAITranscriber(Transcriber):
    """Whisper transcription over the OpenAI-compatible ``/audio/transcriptions`` API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str = "whisper-1",
        language: str | None = None,
        timeout: float = 300.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.language = language
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout))

    def transcribe(self, segment: Path) -> str:
        data = {"model": self.model}
        if self.language:
            data["language"] = self.language
        content_type = CONTENT_TYPES.get(segment.suffix.lower(), "application/octet-stream")

        with open(segment, "rb") as f:
            try:
                response = self._client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    files={"file": (segment.name, f, content_type)},
                    data=data,
                )
            except httpx.HTTPError as exc:
                raise TranscriptionFailed(None, str(exc) or exc.__class__.__name__) from exc

        if not response.is_success:
            raise TranscriptionFailed(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionFailed(response.status_code, response.text) from exc
        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise TranscriptionFailed(response.status_code, response.text)
        return text.strip()

    def close(self) -> None:
        self._client.close()


class LocalWhisperTranscriber(Transcriber):
    """In-process transcription using faster-whisper."""

    def __init__(self, model_size: str = "base", language: str | None = None) -> None:
        self.model_size = model_size
        self.language = language
        self._model = None

    def _get_model(self):
        """Lazy-load the whisper model."""
        if self._model is None:
            from faster_whisper import WhisperModel

            self._model = WhisperModel(self.model_size, device="cpu", compute_type="int8")
        return self._model

    def transcribe(self, segment: Path) -> str:
        try:
            model = self._get_model()
            segments_iter, _info = model.transcribe(str(segment), beam_size=5, language=self.language)
            return " ".join(seg.text.strip() for seg in segments_iter)
        except Exception as e:
            raise TranscriptionFailed(None, f"local whisper failed: {e}") from e


_transcriber: Transcriber | None = None


def get_transcriber() -> Transcriber:
    """Get singleton transcriber for the configured backend."""
    global _transcriber
    if _transcriber is None:
        settings = get_settings()
        language = settings.TRANSCRIPTION_LANGUAGE or None
        if settings.TRANSCRIPTION_BACKEND == "local":
            _transcriber = LocalWhisperTranscriber(settings.WHISPER_MODEL_SIZE, language=language)
        else:
            _transcriber = OpenAITranscriber(
                api_url=settings.TRANSCRIPTION_API_URL,
                api_key=settings.OPENAI_API_KEY,
                model=settings.TRANSCRIPTION_MODEL,
                language=language,
                timeout=settings.TRANSCRIPTION_TIMEOUT_SECONDS,
            )
        logger.info("Using %s transcription backend", settings.TRANSCRIPTION_BACKEND)
    return _transcriber
