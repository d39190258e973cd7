"""Translate engine errors into HTTP responses.

Routes call the engine and let a SettlementError propagate; ``to_http``
turns it into an HTTPException whose detail keeps the taxonomy kind:

    {"detail": {"kind": "not_found", "message": "course ... not found"}}
"""

from __future__ import annotations

from fastapi import HTTPException, status

from settlement.core.errors import SettlementError

_STATUS_BY_KIND = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_input": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_state": status.HTTP_400_BAD_REQUEST,
    "conflict": status.HTTP_409_CONFLICT,
    "no_op": status.HTTP_409_CONFLICT,
    "gateway_error": status.HTTP_502_BAD_GATEWAY,
    "storage_error": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http(exc: SettlementError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=exc.to_dict(),
    )
