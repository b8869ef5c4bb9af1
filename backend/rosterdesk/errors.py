# Overview: Structured error base shared by services and routes.

from __future__ import annotations

from typing import Any


KIND_UPSTREAM = "upstream"
KIND_PERSISTENCE = "persistence"
KIND_DATA_SHAPE = "data_shape"
KIND_VALIDATION = "validation"
KIND_NOT_FOUND = "not_found"
KIND_CONFLICT = "conflict"

HTTP_STATUS_BY_KIND = {
    KIND_VALIDATION: 400,
    KIND_NOT_FOUND: 404,
    KIND_CONFLICT: 409,
    KIND_UPSTREAM: 502,
    KIND_PERSISTENCE: 500,
    KIND_DATA_SHAPE: 500,
}


class ServiceError(Exception):
    """
    Error raised by the service layer.

    `kind` tells the caller whether to abort or skip (see HTTP_STATUS_BY_KIND
    for how routes surface each kind). `detail` holds raw upstream/driver
    information for the operator.
    """
    kind = KIND_PERSISTENCE

    def __init__(self, message: str, detail: Any = None, *, kind: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        if kind is not None:
            self.kind = kind

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_KIND.get(self.kind, 500)

    def to_dict(self) -> dict:
        body = {"error": self.message, "kind": self.kind}
        if self.detail is not None:
            body["details"] = self.detail
        return body


class PersistenceError(ServiceError):
    kind = KIND_PERSISTENCE


class DataShapeError(ServiceError):
    kind = KIND_DATA_SHAPE


class NotFoundError(ServiceError):
    kind = KIND_NOT_FOUND
