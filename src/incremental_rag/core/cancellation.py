"""
Cooperative cancellation for ingestion passes and queries.

A token is passed explicitly into every suspending operation and polled at
natural boundaries: per document, per chunk, per page of remote results and
before each search. Cancelling never rolls back work already committed.
"""

import threading

from incremental_rag.models.exceptions import OperationCancelledError


class CancellationToken:
    """Explicit cancellation signal shared between a caller and the pipeline."""

    def __init__(self, parent: "CancellationToken | None" = None):
        self._event = threading.Event()
        self._parent = parent

    def cancel(self) -> None:
        """Request cancellation of every operation observing this token."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        """Check whether this token, or any parent, has been cancelled."""
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.is_cancelled

    def raise_if_cancelled(self, stage: str | None = None) -> None:
        """
        Raise if cancellation has been requested.

        Args:
            stage: Name of the boundary being checked, for error context

        Raises:
            OperationCancelledError: If the token is cancelled
        """
        if self.is_cancelled:
            raise OperationCancelledError(
                f"Operation cancelled{f' during {stage}' if stage else ''}",
                stage=stage,
            )

    def child(self) -> "CancellationToken":
        """Create a token that is cancelled with this one but can also be cancelled on its own."""
        return CancellationToken(parent=self)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"


def ensure_token(cancel: CancellationToken | None) -> CancellationToken:
    """Return the given token, or a fresh one that is never cancelled."""
    return cancel if cancel is not None else CancellationToken()
