"""PDF rendering of finished transcriptions."""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from app.exceptions import RenderingFailed
from app.services.storage import ArtifactStore

logger = logging.getLogger("splitscribe")


def _latin1(text: str) -> str:
    # core PDF fonts only cover latin-1
    return text.encode("latin-1", "replace").decode("latin-1")


class DocumentRenderer:
    """Writes ``<base name>.pdf`` into the documents collection."""

    def __init__(self, store: ArtifactStore) -> None:
        self.store = store

    def render(self, text: str, source_filename: str, base_name: str, generated_at: datetime | None = None) -> Path:
        """Render the transcription and return the document path. Raises RenderingFailed."""
        generated_at = generated_at or datetime.now(timezone.utc)
        try:
            path = self.store.document_path(base_name)
        except OSError as e:
            raise RenderingFailed(f"Could not prepare documents folder: {e}") from e
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            pdf = FPDF()
            pdf.set_auto_page_break(auto=True, margin=15)
            pdf.set_title(_latin1(f"Transcription - {source_filename}"))
            pdf.add_page()

            pdf.set_font("Helvetica", "B", 16)
            pdf.cell(0, 10, "Transcription", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            pdf.set_font("Helvetica", "", 9)
            pdf.cell(0, 6, _latin1(f"Source file: {source_filename}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            pdf.cell(
                0,
                6,
                f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S %Z')}",
                new_x=XPos.LMARGIN,
                new_y=YPos.NEXT,
            )
            pdf.ln(4)

            pdf.set_font("Helvetica", "", 11)
            pdf.multi_cell(0, 6, _latin1(text) or "(empty transcription)")
            pdf.output(str(tmp_path))
            os.replace(tmp_path, path)
        except Exception as e:
            tmp_path.unlink(missing_ok=True)
            raise RenderingFailed(f"Could not render document {path.name}: {e}") from e

        logger.info("Rendered document %s", path.name)
        return path
