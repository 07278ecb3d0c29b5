"""Cooperative cancellation for long-running suggestion and synthesis flows."""

from .errors import OperationCancelled


class CancellationToken:
    """Flag shared between a caller and the work it started.

    Checked before every call to the embedding provider, the generator and
    the document store.
    """

    def __init__(self):
        self._cancelled = False
        self.reason = ""

    def cancel(self, reason: str = "") -> None:
        self._cancelled = True
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelled(self.reason or "operation cancelled")


def check(token: CancellationToken | None) -> None:
    """Raise if the (optional) token has been cancelled."""
    if token is not None:
        token.raise_if_cancelled()
