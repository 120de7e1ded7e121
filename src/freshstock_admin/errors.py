"""Exception types raised by the ledger, bulk update and checkout services."""

from __future__ import annotations

from typing import Any, Sequence


class LedgerError(RuntimeError):
    """Base class for service level failures."""


class ValidationError(LedgerError):
    """Raised when input is malformed; never retried."""

    def __init__(self, reasons: str | Sequence[str]) -> None:
        self.reasons = [reasons] if isinstance(reasons, str) else list(reasons)
        super().__init__("; ".join(self.reasons))


class NotFoundError(LedgerError):
    """Raised when a referenced record does not exist."""


class TransientStoreError(LedgerError):
    """Raised when the backing store fails an I/O operation."""


class AuditWriteFailure(LedgerError):
    """Raised when an audit record could not be persisted."""


class ReconciliationMismatch(LedgerError):
    """Raised when a client asserted total diverges from the recomputed one.

    The cart has already been reverted to ``restored`` when this is raised.
    """

    def __init__(
        self,
        stage: str,
        recomputed_total: float,
        asserted_total: float,
        restored: list[Any],
    ) -> None:
        self.stage = stage
        self.recomputed_total = recomputed_total
        self.asserted_total = asserted_total
        self.restored = restored
        super().__init__(
            f"Total mismatch before {stage}: recomputed {recomputed_total:.2f}, "
            f"client asserted {asserted_total:.2f}"
        )
