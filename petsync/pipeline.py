"""Fetch records from every configured endpoint and write them to the sheet."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .api_client import ApiClient
from .config import Config
from .errors import ConfigError
from .metrics import ROWS_WRITTEN, SYNC_RUNS
from .scheduler import TriggerScheduler, notify, state
from .sheets import SheetWriter, SyncResult
from .store import TriggerStore
from .validate import validate_response

logger = logging.getLogger(__name__)


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return value


def record_columns(records: Iterable[Any]) -> List[str]:
    columns: List[str] = []
    seen: set[str] = set()
    for record in records:
        if not isinstance(record, dict):
            continue
        for key in record:
            if key not in seen:
                seen.add(key)
                columns.append(key)
    return columns


def records_to_rows(records: Sequence[Any], columns: Optional[Sequence[str]] = None) -> List[List[Any]]:
    """Flatten API records into spreadsheet rows.

    Dict records are laid out by ``columns`` (or the union of their keys in
    first-seen order), list records pass through and scalars become a single
    cell. Short rows are padded with empty cells so the block is rectangular.
    """

    cols = list(columns) if columns is not None else record_columns(records)
    rows: List[List[Any]] = []
    for record in records:
        if isinstance(record, dict):
            rows.append([_cell(record.get(col)) for col in cols])
        elif isinstance(record, list):
            rows.append([_cell(value) for value in record])
        else:
            rows.append([_cell(record)])
    width = max((len(row) for row in rows), default=0)
    return [row + [""] * (width - len(row)) for row in rows]


class SyncPipeline:
    def __init__(
        self,
        config: Config,
        client: ApiClient,
        writer: SheetWriter,
        scheduler: TriggerScheduler,
    ) -> None:
        self.config = config
        self.client = client
        self.writer = writer
        self.scheduler = scheduler

    def fetch(self) -> List[Any]:
        api = self.config.api_config()
        if not api.api_url:
            raise ConfigError("api_url is not configured")
        endpoints = api.endpoints
        if not isinstance(endpoints, Mapping) or not all(
            isinstance(path, str) for path in endpoints.values()
        ):
            raise ConfigError("endpoints must map names to URL paths")

        headers = {
            "Authorization": f"Bearer {api.api_key}",
            "Accept": "application/json",
        }
        base = api.api_url.rstrip("/")
        records: List[Any] = []
        for name, path in endpoints.items():
            payload = self.client.call(base + path, headers=headers)
            validate_response(payload, self.config.required_keys)
            data = payload.get("data")
            if isinstance(data, list):
                records.extend(data)
                logger.debug("Endpoint %s returned %d record(s)", name, len(data))
            else:
                logger.warning("Endpoint %s returned no data array", name)
        return records

    def run(self) -> SyncResult:
        state.running = True
        state.last_started = time.time()
        try:
            records = self.fetch()
            rows = records_to_rows(records, self.config.columns)
            written = self.writer.write(rows, full_refresh=self.config.full_refresh)
            self.scheduler.ensure(
                self.config.trigger_name, self.config.trigger_period_minutes
            )
        except Exception as exc:
            state.last_error = str(exc)
            state.total_errors += 1
            SYNC_RUNS.labels("error").inc()
            notify(f"Error fetching data: {exc}", logging.ERROR)
            raise
        finally:
            state.running = False
            state.last_finished = time.time()

        message = f"Data fetched successfully: {written.rows} row(s) written."
        state.last_error = None
        state.last_rows = written.rows
        state.total_runs += 1
        SYNC_RUNS.labels("success").inc()
        ROWS_WRITTEN.inc(written.rows)
        notify(message)
        return SyncResult(success=True, rows=written.rows, message=message)


def build_pipeline(
    config: Config,
    sheets_service: Any = None,
    http_client: Any = None,
) -> SyncPipeline:
    """Wire the default collaborators for ``config``."""
    return SyncPipeline(
        config,
        ApiClient(config.request_timeout_ms, client=http_client),
        SheetWriter(config, service=sheets_service),
        TriggerScheduler(TriggerStore(config.trigger_db_path)),
    )
