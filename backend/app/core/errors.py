# backend/app/core/errors.py
"""
Domain errors raised by the services.

They are HTTPException subclasses so the global envelope handler in
app.main renders them without per-router try/except; the extra context
(entity, id, field) ends up in the envelope's ``meta``.
"""
from __future__ import annotations
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainError(HTTPException):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        detail: str,
        *,
        entity: Optional[str] = None,
        entity_id: Any = None,
        field: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=self.status_code, detail=detail, headers=headers)
        self.entity = entity
        self.entity_id = entity_id
        self.field = field

    @property
    def context(self) -> Dict[str, Any]:
        ctx: Dict[str, Any] = {"type": type(self).__name__}
        if self.entity:
            ctx["entity"] = self.entity
        if self.entity_id is not None:
            ctx["id"] = self.entity_id
        if self.field:
            ctx["field"] = self.field
        return ctx


class ValidationError(DomainError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidTransitionError(DomainError):
    status_code = status.HTTP_409_CONFLICT


class UnauthorizedError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
