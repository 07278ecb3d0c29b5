"""Exception types raised by ksynth."""


class KsynthError(Exception):
    """Base class for all ksynth errors."""


class NotFoundError(KsynthError):
    """A referenced document, cluster or seed does not resolve."""


class EmptyInputError(KsynthError):
    """A stage has nothing to work on."""

    def __init__(self, message: str, stage: str = "", request_id: str | None = None):
        super().__init__(message)
        self.stage = stage
        self.request_id = request_id


class ProviderUnavailableError(KsynthError):
    """An embedding or generation provider is not configured."""


class ExternalServiceError(KsynthError):
    """A call to an embedding, generation or storage backend failed."""

    def __init__(self, message: str, stage: str = "", request_id: str | None = None):
        super().__init__(message)
        self.stage = stage
        self.request_id = request_id


class DimensionMismatchError(KsynthError):
    """Two vectors of different length were compared."""


class DocumentExistsError(KsynthError):
    """The document store refused to create a path that already exists."""


class OperationCancelled(KsynthError):
    """The caller cancelled an in-flight operation."""
