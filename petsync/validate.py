from __future__ import annotations

from typing import Any, Sequence

from .errors import SchemaError


def validate_response(response: Any, required_keys: Sequence[str]) -> None:
    """Raise ``SchemaError`` unless every required key is present.

    Only presence is checked; values may be of any type, including ``None``.
    """

    if not isinstance(response, dict):
        raise SchemaError(
            f"response must be a JSON object, got {type(response).__name__}"
        )
    if isinstance(required_keys, (str, bytes)) or not isinstance(required_keys, Sequence):
        raise SchemaError("required keys must be a sequence of strings")
    if not all(isinstance(key, str) for key in required_keys):
        raise SchemaError("required keys must be a sequence of strings")

    missing = [key for key in required_keys if key not in response]
    if missing:
        raise SchemaError(f"response is missing required keys: {', '.join(missing)}")
