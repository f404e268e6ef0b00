from __future__ import annotations

from typing import Any, Dict, List

import pytest

from petsync.config import DEFAULTS, Config
from petsync.scheduler import state as sync_state


class _FakeRequest:
    def __init__(self, callback):
        self._callback = callback

    def execute(self):
        return self._callback()


class _FakeValues:
    def __init__(self, service: "FakeSheetsService") -> None:
        self._service = service

    def clear(self, spreadsheetId: str, range: str, body: Dict[str, Any]):  # noqa: N803 - API compatibility
        def _do():
            self._service.cleared.append(range)
            return {"clearedRange": range}

        return _FakeRequest(_do)

    def update(self, spreadsheetId: str, range: str, valueInputOption: str, body: Dict[str, Any]):  # noqa: N803
        def _do():
            self._service.updates.append({"range": range, "values": body["values"]})
            return {"updatedRange": range, "updatedRows": len(body["values"])}

        return _FakeRequest(_do)


class _FakeSpreadsheets:
    def __init__(self, service: "FakeSheetsService") -> None:
        self._service = service

    def get(self, spreadsheetId: str, fields: str = ""):  # noqa: N803
        titles = self._service.titles
        return _FakeRequest(
            lambda: {"sheets": [{"properties": {"title": t}} for t in titles]}
        )

    def values(self) -> _FakeValues:
        return _FakeValues(self._service)


class FakeSheetsService:
    """Records the calls the writer makes against the Sheets API."""

    def __init__(self, titles: List[str] | None = None) -> None:
        self.titles = list(titles) if titles is not None else ["PetData"]
        self.cleared: List[str] = []
        self.updates: List[Dict[str, Any]] = []

    def spreadsheets(self) -> _FakeSpreadsheets:
        return _FakeSpreadsheets(self)


def make_config(**overrides: Any) -> Config:
    base = {"api_key": "secret", "spreadsheet_id": "sheet-123"}
    base.update(overrides)
    values = dict(DEFAULTS)
    values.update(base)
    return Config(**values)


@pytest.fixture
def sheets_service() -> FakeSheetsService:
    return FakeSheetsService()


@pytest.fixture(autouse=True)
def reset_sync_state():
    for attr in ("last_started", "last_finished", "last_error", "last_message", "last_rows"):
        setattr(sync_state, attr, None)
    sync_state.running = False
    sync_state.total_runs = 0
    sync_state.total_errors = 0
    yield
    sync_state.running = False
