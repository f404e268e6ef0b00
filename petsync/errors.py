"""Error kinds raised by the sync pipeline and its collaborators."""

from __future__ import annotations


class PetSyncError(RuntimeError):
    kind = "error"


class ConfigError(PetSyncError):
    """A setting is missing or malformed."""

    kind = "config"


class TransportError(PetSyncError):
    """The remote API could not be reached (DNS, connection, timeout)."""

    kind = "transport"

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class HttpStatusError(PetSyncError):
    """The remote API answered outside the 2xx range."""

    kind = "http_status"

    def __init__(self, status_code: int, body: str, url: str = "") -> None:
        super().__init__(f"HTTP {status_code} from {url or 'remote API'}: {body[:200]}")
        self.status_code = status_code
        self.body = body
        self.url = url


class DecodeError(PetSyncError):
    kind = "decode"


class SchemaError(PetSyncError):
    kind = "schema"


class FormatError(PetSyncError):
    kind = "format"
