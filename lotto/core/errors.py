"""
Domain errors raised by the services.

Every error carries a stable ``kind`` (for callers to branch on) and a
human-readable ``reason``; extra keyword details are kept for ``to_dict()``.
Translating them into user-facing text is the UI's job.
"""
from typing import Any, Dict


class LottoError(Exception):
    kind = "lotto_error"

    def __init__(self, reason: str, **details: Any):
        super().__init__(reason)
        self.reason = reason
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "reason": self.reason, **self.details}


class InvalidSelectionError(LottoError):
    kind = "invalid_selection"


class InvalidWinningNumbersError(LottoError):
    kind = "invalid_winning_numbers"


class InsufficientFundsError(LottoError):
    kind = "insufficient_funds"


class DrawNotScheduledError(LottoError):
    kind = "draw_not_scheduled"


class AlreadyProcessedError(LottoError):
    kind = "already_processed"


class PersistenceError(LottoError):
    """Storage failure; the unit of work was rolled back and may be retried."""
    kind = "persistence_error"


class NotFoundError(LottoError):
    kind = "not_found"


class UserNotFoundError(NotFoundError):
    pass


class DrawNotFoundError(NotFoundError):
    pass


class InvalidAmountError(LottoError):
    kind = "invalid_amount"


class InvalidDecisionError(LottoError):
    kind = "invalid_decision"


class AccountSuspendedError(LottoError):
    kind = "account_suspended"


class PermissionDeniedError(LottoError):
    kind = "permission_denied"


class InvalidStatusError(LottoError):
    kind = "invalid_status"


class ConflictError(LottoError):
    kind = "conflict"


class InvalidRoleError(LottoError):
    kind = "invalid_role"
