from __future__ import annotations

from typing import Protocol

from fastapi import HTTPException


class DomainError(Protocol):
    kind: str
    status_code: int
    code: str
    message: str
    context: dict[str, object]


def as_http_exception(exc: DomainError) -> HTTPException:
    if exc.kind == "infrastructure":
        return HTTPException(
            status_code=500,
            detail={"code": "E_INTERNAL", "context": exc.context},
        )
    return HTTPException(
        status_code=exc.status_code,
        detail={"code": exc.code, "message": exc.message},
    )
