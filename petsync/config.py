from __future__ import annotations

import copy
import json
import logging
import re
from typing import Any, Iterable, Mapping, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .api_client import parse_url
from .errors import ConfigError
from .properties import ScriptProperties, UserProperties

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"^https?://")

DEFAULTS: dict[str, Any] = {
    "api_url": "https://api.example.com",
    "api_key": "",
    "endpoints": {
        "pets": "/pets",
        "owners": "/owners",
    },
    "sheet_name": "PetData",
    "full_refresh_range": "A2:Z1000",
    "incremental_refresh_range": "A2",
    "trigger_name": "fetchData",
    "spreadsheet_id": "",
    "full_refresh": True,
    "trigger_period_minutes": 60,
    "request_timeout_ms": 30000,
    "required_keys": ["data"],
    "columns": None,
    "google_service_account_json": None,
    "google_oauth_client_secrets": None,
    "token_store": ".tokens/sheets.json",
    "trigger_db_path": "petsync.db",
    "log_level": "INFO",
}

# external property name -> Config field
KEY_MAP: dict[str, str] = {
    "API_URL": "api_url",
    "API_KEY": "api_key",
    "ENDPOINTS": "endpoints",
    "SHEET_NAME": "sheet_name",
    "FULL_REFRESH_RANGE": "full_refresh_range",
    "INCREMENTAL_REFRESH_RANGE": "incremental_refresh_range",
    "TRIGGER_NAME": "trigger_name",
    "SPREADSHEET_ID": "spreadsheet_id",
    "FULL_REFRESH": "full_refresh",
    "TRIGGER_PERIOD_MINUTES": "trigger_period_minutes",
    "REQUEST_TIMEOUT_MS": "request_timeout_ms",
    "REQUIRED_KEYS": "required_keys",
    "COLUMNS": "columns",
    "GOOGLE_SERVICE_ACCOUNT_JSON": "google_service_account_json",
    "GOOGLE_OAUTH_CLIENT_SECRETS": "google_oauth_client_secrets",
    "TOKEN_STORE": "token_store",
    "TRIGGER_DB_PATH": "trigger_db_path",
    "LOG_LEVEL": "log_level",
}

# keys whose values are JSON literals, with the expected decoded type
JSON_KEYS: dict[str, type] = {
    "ENDPOINTS": dict,
    "REQUIRED_KEYS": list,
    "COLUMNS": list,
}


class ApiConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_url: str
    api_key: str
    endpoints: dict[str, str]


class SheetRanges(BaseModel):
    model_config = ConfigDict(frozen=True)

    sheet_name: str
    full_refresh_range: str
    incremental_refresh_range: str


class Config(BaseModel):
    """Process-wide settings, validated once and never mutated."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_url: str
    api_key: str
    endpoints: dict[str, str] = Field(default_factory=dict)
    sheet_name: str = Field(min_length=1)
    full_refresh_range: str = Field(min_length=1)
    incremental_refresh_range: str = Field(min_length=1)
    trigger_name: str = Field(min_length=1)

    spreadsheet_id: str = ""
    full_refresh: bool = True
    trigger_period_minutes: int = Field(default=60, ge=1)
    request_timeout_ms: int = Field(default=30000, ge=1)
    required_keys: list[str] = Field(default_factory=lambda: ["data"])
    columns: Optional[list[str]] = None
    google_service_account_json: Optional[str] = None
    google_oauth_client_secrets: Optional[str] = None
    token_store: str = ".tokens/sheets.json"
    trigger_db_path: str = "petsync.db"
    log_level: str = "INFO"

    @field_validator("api_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not URL_PATTERN.match(value or ""):
            raise ValueError("must start with http:// or https://")
        parse_url(value)
        return value

    @field_validator("api_key")
    @classmethod
    def _check_key(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must be supplied through API_KEY")
        return value

    @field_validator("endpoints")
    @classmethod
    def _check_endpoints(cls, value: dict[str, str]) -> dict[str, str]:
        for name, path in value.items():
            if not path:
                raise ValueError(f"endpoint {name!r} has an empty path")
            if not path.startswith("/"):
                raise ValueError(f"endpoint {name!r} path must start with '/': {path!r}")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()

    def api_config(self) -> ApiConfig:
        return ApiConfig(
            api_url=self.api_url,
            api_key=self.api_key,
            endpoints=dict(self.endpoints),
        )

    def sheet_ranges(self) -> SheetRanges:
        return SheetRanges(
            sheet_name=self.sheet_name,
            full_refresh_range=self.full_refresh_range,
            incremental_refresh_range=self.incremental_refresh_range,
        )


class PropertySource(Protocol):
    def get_properties(self) -> Mapping[str, str]: ...


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``override`` merged onto ``base`` without mutating either.

    Mappings present on both sides merge recursively, ``None`` overrides are
    skipped, anything else replaces the base value.
    """

    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(p) for p in error.get("loc", ())) or "config"
        message = error.get("msg", "invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        parts.append(f"{field}: {message}")
    return "Invalid configuration: " + "; ".join(parts)


def default_sources() -> list[PropertySource]:
    return [ScriptProperties(env_keys=KEY_MAP), UserProperties()]


class ConfigResolver:
    """Merge compiled-in defaults with the script and user property scopes.

    Sources are read in order and flattened into one mapping, so a key set
    in a later scope replaces the same key from an earlier one. Unknown keys
    are logged and ignored, or rejected when ``strict`` is set.
    """

    def __init__(
        self,
        sources: Optional[Iterable[PropertySource]] = None,
        defaults: Optional[Mapping[str, Any]] = None,
        strict: bool = False,
    ) -> None:
        self.sources = list(sources) if sources is not None else default_sources()
        self.defaults = dict(defaults if defaults is not None else DEFAULTS)
        self.strict = strict
        self._config: Config | None = None

    def read_properties(self) -> dict[str, Any]:
        flat: dict[str, Any] = {}
        for source in self.sources:
            flat.update(source.get_properties())
        return flat

    def translate(self, properties: Mapping[str, Any]) -> dict[str, Any]:
        unknown = sorted(key for key in properties if key not in KEY_MAP)
        if unknown:
            if self.strict:
                raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
            logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))

        overrides: dict[str, Any] = {}
        for key, field in KEY_MAP.items():
            if key not in properties:
                continue
            value = properties[key]
            expected = JSON_KEYS.get(key)
            if expected is not None and isinstance(value, str):
                try:
                    value = json.loads(value)
                except json.JSONDecodeError as exc:
                    raise ConfigError(f"{key} is not valid JSON: {exc}") from exc
            if expected is not None and not isinstance(value, expected):
                raise ConfigError(
                    f"{key} must be a JSON {'object' if expected is dict else 'array'}"
                )
            overrides[field] = value
        return overrides

    def _resolved(self) -> Config:
        if self._config is not None:
            return self._config
        overrides = self.translate(self.read_properties())
        merged = deep_merge(self.defaults, overrides)
        try:
            self._config = Config(**merged)
        except ValidationError as exc:
            raise ConfigError(_format_validation_error(exc)) from exc
        logger.debug(
            "Configuration resolved with %d endpoint(s) for sheet %s",
            len(self._config.endpoints),
            self._config.sheet_name,
        )
        return self._config

    def resolve(self) -> Config:
        """Return a deep copy of the validated configuration.

        Properties are read and validated once; callers never share the
        nested containers of the cached instance.
        """
        return self._resolved().model_copy(deep=True)

    def get_api_config(self) -> ApiConfig:
        return self._resolved().api_config()

    def get_sheet_ranges(self) -> SheetRanges:
        return self._resolved().sheet_ranges()

    def get_trigger_name(self) -> str:
        return self._resolved().trigger_name
