from __future__ import annotations

from typing import Mapping


class CobblerError(Exception):
    pass


class ValidationError(CobblerError):
    """One or more fields failed validation. Nothing was written."""

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: message})


class NotFoundError(CobblerError):
    def __init__(self, entity: str, entity_id: int) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} #{entity_id} not found")


class ConflictError(CobblerError):
    pass


class NetworkError(CobblerError):
    """Raised by the API client for transport failures, non-2xx answers and
    `success: false` envelopes."""

    def __init__(self, message: str, status_code: int | None = None, fields: Mapping[str, str] | None = None) -> None:
        self.status_code = status_code
        self.fields = dict(fields or {})
        super().__init__(message)
