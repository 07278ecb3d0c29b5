"""Document store over an Obsidian-style folder of Markdown files."""

import logging
import re
from pathlib import Path, PurePosixPath

from ..errors import DocumentExistsError, NotFoundError
from ..models import Document
from .base import DocumentStore
from .templates import split_frontmatter

logger = logging.getLogger(__name__)

# "#tag" or "#nested/tag", not inside words or headings ("# Title")
INLINE_TAG_RE = re.compile(r"(?<![\w#/])#([\w\-]+(?:/[\w\-]+)*)")


def normalize_tag(tag: str) -> str:
    return str(tag).strip().lstrip("#")


def tag_matches(candidate: str, tag: str) -> bool:
    """``tag`` matches itself and its sub-tags."""
    return candidate == tag or candidate.startswith(tag + "/")


def folder_matches(candidate: str, folder: str) -> bool:
    folder = folder.strip("/")
    return candidate == folder or candidate.startswith(folder + "/")


def extract_tags(frontmatter: dict, body: str) -> set[str]:
    """Tags from the frontmatter ``tags`` field and inline ``#tags``."""
    tags: set[str] = set()
    fm_tags = frontmatter.get("tags") or []
    if isinstance(fm_tags, str):
        fm_tags = re.split(r"[,\s]+", fm_tags)
    for tag in fm_tags:
        if tag := normalize_tag(tag):
            tags.add(tag)

    for match in INLINE_TAG_RE.finditer(body):
        tag = match.group(1)
        if not tag.isdigit():
            tags.add(tag)
    return tags


class MarkdownVaultStore(DocumentStore):
    """Reads and writes ``*.md`` files below ``vault_path``.

    A document's id is its file name without extension, its path is the
    POSIX path relative to the vault root. Hidden files and folders are
    ignored.
    """

    def __init__(self, vault_path: str | Path):
        self.vault_path = Path(vault_path)

    def _files(self) -> list[Path]:
        if not self.vault_path.exists():
            return []
        files = []
        for md_file in sorted(self.vault_path.rglob("*.md")):
            rel = md_file.relative_to(self.vault_path)
            if any(part.startswith(".") for part in rel.parts):
                continue
            files.append(md_file)
        return files

    def _rel(self, file_path: Path) -> str:
        return file_path.relative_to(self.vault_path).as_posix()

    def _resolve(self, path: str) -> Path:
        """Absolute path for a vault-relative one, refusing escapes."""
        target = (self.vault_path / path).resolve()
        root = self.vault_path.resolve()
        if root != target and root not in target.parents:
            raise ValueError(f"Path escapes the vault: {path}")
        return target

    def _read(self, file_path: Path) -> Document | None:
        try:
            text = file_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.error(f"Error reading file {file_path}: {e}")
            return None

        frontmatter, body = split_frontmatter(text)
        return Document(
            id=file_path.stem,
            path=self._rel(file_path),
            title=str(frontmatter.get("title") or file_path.stem),
            content=body.strip(),
            tags=extract_tags(frontmatter, body),
        )

    def _read_all(self) -> list[Document]:
        return [doc for f in self._files() if (doc := self._read(f)) is not None]

    async def get(self, doc_id: str) -> Document | None:
        for file_path in self._files():
            if file_path.stem == doc_id:
                return self._read(file_path)
        return None

    async def get_by_path(self, path: str) -> Document | None:
        try:
            file_path = self._resolve(path)
        except ValueError:
            return None
        if not file_path.is_file():
            return None
        return self._read(file_path)

    async def get_by_tag(self, tag: str) -> list[Document]:
        tag = normalize_tag(tag)
        return [d for d in self._read_all() if any(tag_matches(t, tag) for t in d.tags)]

    async def get_by_folder(self, folder: str) -> list[Document]:
        return [
            d for d in self._read_all()
            if folder_matches(str(PurePosixPath(d.path).parent), folder)
        ]

    async def get_all(self) -> list[Document]:
        return self._read_all()

    async def create(self, path: str, content: str) -> None:
        file_path = self._resolve(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(file_path, "x", encoding="utf-8") as f:
                f.write(content)
        except FileExistsError as e:
            raise DocumentExistsError(f"Document already exists: {path}") from e

    async def update(self, path: str, content: str) -> None:
        file_path = self._resolve(path)
        if not file_path.is_file():
            raise NotFoundError(f"Document not found: {path}")
        file_path.write_text(content, encoding="utf-8")

    async def list_tags(self) -> list[str]:
        tags: set[str] = set()
        for doc in self._read_all():
            tags.update(doc.tags)
        return sorted(tags)

    async def list_folders(self) -> list[str]:
        folders = set()
        for file_path in self._files():
            parent = file_path.parent.relative_to(self.vault_path).as_posix()
            if parent != ".":
                folders.add(parent)
        return sorted(folders)
