"""Pull pet and owner records from an HTTP API into a Google Sheet."""

from .config import Config, ConfigResolver
from .errors import (
    ConfigError,
    DecodeError,
    FormatError,
    HttpStatusError,
    PetSyncError,
    SchemaError,
    TransportError,
)

__version__ = "0.1.0"

__all__ = [
    "Config",
    "ConfigResolver",
    "ConfigError",
    "DecodeError",
    "FormatError",
    "HttpStatusError",
    "PetSyncError",
    "SchemaError",
    "TransportError",
    "__version__",
]
