from __future__ import annotations

import logging
import re
from typing import Any, List, Optional, Sequence, Tuple

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from pydantic import BaseModel

from .config import Config
from .errors import ConfigError, FormatError
from .oauth import resolve_credentials

logger = logging.getLogger(__name__)

_CELL = re.compile(r"^\$?([A-Za-z]*)\$?(\d*)$")


class SyncResult(BaseModel):
    success: bool
    rows: int
    message: str = ""


def _service(creds: Credentials):
    return build("sheets", "v4", credentials=creds, cache_discovery=False)


def column_letters(index: int) -> str:
    """1 -> A, 27 -> AA."""
    if index < 1:
        raise ValueError("column index starts at 1")
    letters = ""
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def column_index(letters: str) -> int:
    index = 0
    for ch in letters.upper():
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index


def quote_sheet(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def start_cell(expression: str) -> Tuple[int, int]:
    """Return the 1-based (row, column) of the top-left cell of an A1 range.

    A sheet prefix (``Sheet1!``) is ignored. Whole-column ranges start at row
    1 and whole-row ranges at column A.
    """

    cells = expression.rsplit("!", 1)[-1].strip()
    first = cells.split(":", 1)[0].strip()
    match = _CELL.match(first)
    if not first or not match or not (match.group(1) or match.group(2)):
        raise ConfigError(f"Cannot parse range {expression!r}")
    letters, digits = match.groups()
    row = int(digits) if digits else 1
    col = column_index(letters) if letters else 1
    if row < 1:
        raise ConfigError(f"Cannot parse range {expression!r}")
    return row, col


def block_range(sheet: str, row: int, col: int, height: int, width: int) -> str:
    top_left = f"{column_letters(col)}{row}"
    bottom_right = f"{column_letters(col + width - 1)}{row + height - 1}"
    return f"{quote_sheet(sheet)}!{top_left}:{bottom_right}"


def check_rows(rows: Any) -> List[List[Any]]:
    if not isinstance(rows, (list, tuple)) or not rows:
        raise FormatError("rows must be a non-empty list of rows")
    if not isinstance(rows[0], (list, tuple)):
        raise FormatError("rows must be a list of lists")
    width = len(rows[0])
    if width == 0:
        raise FormatError("rows must have at least one column")
    block: List[List[Any]] = []
    for i, row in enumerate(rows):
        if not isinstance(row, (list, tuple)):
            raise FormatError(f"row {i} is not a list")
        if len(row) != width:
            raise FormatError(f"row {i} has {len(row)} columns, expected {width}")
        block.append(list(row))
    return block


class SheetWriter:
    """Write a rectangular block of values into the configured sheet."""

    def __init__(
        self,
        config: Config,
        service: Any = None,
        credentials: Optional[Credentials] = None,
    ) -> None:
        self.config = config
        self._service = service
        self._credentials = credentials

    def service(self):
        if self._service is None:
            creds = self._credentials or resolve_credentials(self.config)
            if not creds:
                raise ConfigError("Google credentials not configured")
            self._service = _service(creds)
        return self._service

    def _spreadsheet_id(self) -> str:
        if not self.config.spreadsheet_id:
            raise ConfigError("spreadsheet_id: must be supplied through SPREADSHEET_ID")
        return self.config.spreadsheet_id

    def sheet_titles(self) -> List[str]:
        meta = (
            self.service()
            .spreadsheets()
            .get(spreadsheetId=self._spreadsheet_id(), fields="sheets.properties.title")
            .execute()
        )
        return [s["properties"]["title"] for s in meta.get("sheets", [])]

    def target_sheet(self) -> str:
        wanted = self.config.sheet_name
        titles = self.sheet_titles()
        if wanted in titles:
            return wanted
        if not titles:
            raise ConfigError("spreadsheet has no sheets")
        logger.warning("Sheet %r not found, writing to %r instead", wanted, titles[0])
        return titles[0]

    def write(self, rows: Sequence[Sequence[Any]], full_refresh: bool = True) -> SyncResult:
        block = check_rows(rows)
        sheet = self.target_sheet()
        ranges = self.config.sheet_ranges()
        values = self.service().spreadsheets().values()
        spreadsheet_id = self._spreadsheet_id()

        if full_refresh:
            origin = ranges.full_refresh_range
            values.clear(
                spreadsheetId=spreadsheet_id,
                range=f"{quote_sheet(sheet)}!{origin.rsplit('!', 1)[-1]}",
                body={},
            ).execute()
        else:
            origin = ranges.incremental_refresh_range

        row, col = start_cell(origin)
        target = block_range(sheet, row, col, len(block), len(block[0]))
        values.update(
            spreadsheetId=spreadsheet_id,
            range=target,
            valueInputOption="USER_ENTERED",
            body={"values": block},
        ).execute()
        logger.info("Wrote %d row(s) to %s", len(block), target)
        return SyncResult(success=True, rows=len(block))
