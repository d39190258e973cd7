"""Error taxonomy for the settlement engine.

Every failure an engine operation can report carries a ``kind`` tag and a
human-readable message.  The HTTP layer maps kinds to status codes; the
engine never returns a bare exception from the ledger or the gateway.

  not_found      referenced entity absent (course, payment, quiz, group, user)
  invalid_input  malformed or missing fields, unparsable answer payload
  invalid_state  operation not valid for the current data (empty group)
  conflict       strict creation of something that already exists
  no_op          operation already satisfied, strict callers only
  gateway_error  payment provider unreachable or returned garbage
  storage_error  the ledger store failed; nothing was committed
"""

from __future__ import annotations


class SettlementError(Exception):
    kind = "settlement_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class NotFoundError(SettlementError):
    kind = "not_found"


class InvalidInputError(SettlementError):
    kind = "invalid_input"


class InvalidStateError(SettlementError):
    kind = "invalid_state"


class ConflictError(SettlementError):
    kind = "conflict"


class NoOpError(SettlementError):
    kind = "no_op"


class GatewayError(SettlementError):
    """The provider could not be reached or answered with something unusable.

    Distinct from the provider explicitly declining a charge, which is a
    normal ``failed`` payment outcome.
    """

    kind = "gateway_error"


class StorageError(SettlementError):
    kind = "storage_error"
