"""Document store interface."""

from abc import ABC, abstractmethod

from ..models import Document


class DocumentStore(ABC):
    """Async CRUD and attribute listing over the notes of a knowledge base."""

    @abstractmethod
    async def get(self, doc_id: str) -> Document | None:
        """Document by id, or None."""

    @abstractmethod
    async def get_by_path(self, path: str) -> Document | None:
        """Document by vault-relative path, or None."""

    @abstractmethod
    async def get_by_tag(self, tag: str) -> list[Document]:
        """Documents carrying ``tag`` or one of its sub-tags (``tag/child``)."""

    @abstractmethod
    async def get_by_folder(self, folder: str) -> list[Document]:
        """Documents in ``folder`` or any of its sub-folders."""

    @abstractmethod
    async def get_all(self) -> list[Document]:
        """Every document."""

    @abstractmethod
    async def create(self, path: str, content: str) -> None:
        """Create a new file. Raises DocumentExistsError if ``path`` exists."""

    @abstractmethod
    async def update(self, path: str, content: str) -> None:
        """Overwrite an existing file."""

    @abstractmethod
    async def list_tags(self) -> list[str]:
        """Sorted tags in use, without a leading ``#``."""

    @abstractmethod
    async def list_folders(self) -> list[str]:
        """Sorted folders that contain documents."""
