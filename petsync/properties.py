"""Key-value property scopes read at startup.

Two scopes exist: the *script* scope (the project's ``.env`` file plus the
process environment) and the *user* scope (a per-user dotenv file). Both are
plain ``dict[str, str]`` snapshots; the resolver merges them in order.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Mapping

from dotenv import dotenv_values

USER_PROPERTIES_ENV = "PETSYNC_USER_PROPERTIES"
DEFAULT_USER_PROPERTIES = Path("~/.config/petsync/user.env")


def _read_dotenv(path: str | os.PathLike[str]) -> dict[str, str]:
    p = Path(path).expanduser()
    if not p.is_file():
        return {}
    return {key: value for key, value in dotenv_values(p).items() if value is not None}


class ScriptProperties:
    """Project-level properties: ``.env`` overlaid with matching env vars."""

    def __init__(
        self,
        path: str | os.PathLike[str] = ".env",
        env_keys: Iterable[str] = (),
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.path = path
        self.env_keys = tuple(env_keys)
        self._environ = environ

    def get_properties(self) -> dict[str, str]:
        values = _read_dotenv(self.path)
        environ = os.environ if self._environ is None else self._environ
        for key in self.env_keys:
            if key in environ:
                values[key] = environ[key]
        return values


class UserProperties:
    """Per-user properties stored in a dotenv file."""

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self.path = path or os.getenv(USER_PROPERTIES_ENV) or DEFAULT_USER_PROPERTIES

    def get_properties(self) -> dict[str, str]:
        return _read_dotenv(self.path)


class MappingProperties:
    def __init__(self, values: Mapping[str, str]) -> None:
        self._values = dict(values)

    def get_properties(self) -> dict[str, str]:
        return dict(self._values)
