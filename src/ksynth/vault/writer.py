"""Write synthesis results into the vault."""

import logging
import re

from ..cancel import CancellationToken, check
from ..errors import DocumentExistsError
from ..models import SynthesisResult
from .base import DocumentStore
from .templates import render_synthesis

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 100


def sanitize_filename(name: str) -> str:
    """Sanitize a string for use as a filename."""
    name = re.sub(r'[\\/:*?"<>|]', "", name)
    name = re.sub(r"\s+", " ", name).strip()
    name = name[:MAX_FILENAME_LENGTH].strip()
    return name or "untitled"


class SynthesisWriter:
    """Persists SynthesisResults through a DocumentStore."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def target_path(self, result: SynthesisResult, folder: str) -> str:
        file_name = f"{sanitize_filename(result.title)}.md"
        folder = folder.strip("/")
        return f"{folder}/{file_name}" if folder else file_name

    async def save(
        self,
        result: SynthesisResult,
        folder: str,
        token: CancellationToken | None = None,
    ) -> str:
        """Write the note and return its vault path.

        Writing the same result twice overwrites the first file.
        """
        path = self.target_path(result, folder)
        content = render_synthesis(result)

        check(token)
        try:
            await self.store.create(path, content)
        except DocumentExistsError:
            logger.info(f"{path} exists, overwriting")
            check(token)
            await self.store.update(path, content)
        return path
