"""
Sheet web app client.

The source sheet is exposed by an Apps Script web app. Every operation is a
GET with an `action` query parameter and a JSON response:

    getRow       ?action=getRow&row=5                  -> {row, data: {A: ..., B: ...}}
    list         ?action=list&start=2&end=50           -> {rows: [{row, data}, ...]}
    updateCell   ?action=updateCell&row=5&col=A&value= -> {success, message}
    highlightCell  ?action=highlightCell&row=5&col=A&color=%23FFF176
    highlightRange ?action=highlightRange&row=5&cols=B,C,D&color=%234CAF50
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

import aiohttp

from core.errors import SheetAPIError
from core.models import SheetRow
from core.retry import async_retry

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


def apply_column_mapping(raw: Dict[str, Any], mapping: Dict[str, str]) -> Dict[str, str]:
    """Column letter -> field name, keeping only mapped columns present in the row."""
    mapped = {}
    for letter, field_name in mapping.items():
        if letter in raw and raw[letter] is not None:
            mapped[field_name] = str(raw[letter])
    return mapped


class SheetClient:
    """Async client for the sheet web app."""

    def __init__(
        self,
        base_url: str,
        column_mapping: Dict[str, str],
        timeout_seconds: float = 30.0,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
    ):
        self.base_url = base_url
        self.column_mapping = dict(column_mapping)
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

    async def _get_once(self, params: Dict[str, str]) -> Dict[str, Any]:
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(self.base_url, params=params) as resp:
                if not 200 <= resp.status < 300:
                    text = await resp.text()
                    raise SheetAPIError(
                        f"Sheet API error: {resp.status} {resp.reason} {text[:200]}".strip(),
                        status=resp.status,
                    )
                # Apps Script serves JSON as text/plain or text/html
                return await resp.json(content_type=None)

    async def _get(self, params: Dict[str, str]) -> Dict[str, Any]:
        if not self.base_url:
            raise SheetAPIError("No sheet web app URL configured")

        request = async_retry(
            max_attempts=self.retry_attempts,
            delay=self.retry_delay,
            exceptions=TRANSPORT_ERRORS,
            label=f"sheet {params.get('action')}",
        )(self._get_once)
        try:
            payload = await request(params)
        except TRANSPORT_ERRORS as e:
            raise SheetAPIError(f"Sheet API unreachable: {e}") from e

        if not isinstance(payload, dict):
            raise SheetAPIError(f"Unexpected sheet API response: {payload!r}"[:200])
        if payload.get("success") is False or payload.get("error"):
            raise SheetAPIError(payload.get("message") or payload.get("error") or "Sheet API request failed")
        return payload

    def _to_row(self, row_number: int, raw: Optional[Dict[str, Any]]) -> SheetRow:
        raw = {key: "" if value is None else str(value) for key, value in (raw or {}).items()}
        return SheetRow(row=row_number, raw=raw, data=apply_column_mapping(raw, self.column_mapping))

    async def get_row(self, row: int) -> SheetRow:
        logger.info(f"Fetching row {row} from sheet")
        payload = await self._get({"action": "getRow", "row": str(row)})
        sheet_row = self._to_row(int(payload.get("row", row)), payload.get("data"))
        logger.debug(f"Row {row} fetched: {sorted(sheet_row.data.keys())}")
        return sheet_row

    async def list_rows(self, start: int = 2, end: Optional[int] = None) -> List[SheetRow]:
        params = {"action": "list", "start": str(start)}
        if end is not None:
            params["end"] = str(end)
        payload = await self._get(params)
        rows = [self._to_row(int(item["row"]), item.get("data")) for item in payload.get("rows", [])]
        logger.info(f"Listed {len(rows)} rows from sheet")
        return rows

    async def update_cell(self, row: int, col: str, value: str) -> Dict[str, Any]:
        logger.info(f"Updating cell {col}{row} to '{value}'")
        payload = await self._get({
            "action": "updateCell",
            "row": str(row),
            "col": col,
            "value": value,
        })
        return {"success": True, "message": payload.get("message") or f"Cell {col}{row} updated"}

    async def highlight_cells(self, row: int, cols: Union[str, Iterable[str]], color: str) -> Dict[str, Any]:
        if isinstance(cols, str):
            cols = [cols]
        cols = list(cols)
        if len(cols) == 1:
            params = {"action": "highlightCell", "row": str(row), "col": cols[0], "color": color}
        else:
            params = {"action": "highlightRange", "row": str(row), "cols": ",".join(cols), "color": color}
        payload = await self._get(params)
        return {"success": True, "message": payload.get("message", "")}
