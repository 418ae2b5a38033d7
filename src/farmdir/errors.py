"""Error taxonomy shared by the CRM client, sync pipeline and HTTP layer."""
from __future__ import annotations

from typing import Optional


class FarmDirError(Exception):
    """Base class; `status` is the HTTP status an endpoint should answer with."""

    status = 500


class AuthConfigError(FarmDirError):
    """Zoho refresh token, client id or client secret is missing."""


class AuthExchangeError(FarmDirError):
    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.upstream_status = status
        self.body = body


class UpstreamError(FarmDirError):
    """Non-success response from Zoho CRM. `code` is Zoho's error code, if any."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.upstream_status = status
        self.body = body
        self.code = code

    @property
    def invalid_token(self) -> bool:
        return self.code == "INVALID_TOKEN" or self.upstream_status == 401


class NotFoundError(FarmDirError):
    """Zoho answered without a record for the requested id."""


class StorageError(FarmDirError):
    """Supabase read or write failed. `code` is the Postgres/PostgREST code when known."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class SlugExhausted(FarmDirError):
    pass


class BadRequest(FarmDirError):
    status = 400


class Unauthorized(FarmDirError):
    status = 401
