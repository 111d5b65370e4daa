"""
Google Sheets (v4 REST) table store adapter.
"""

from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote
import httpx
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.errors import RemoteUnavailable
from shared.logging import get_logger
from shared.retry import RetryConfig, retry_on_exception
from .base import BatchWriteOutcome, RemoteTableStore, Rows, WriteAck, WriteRequest

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
READ_RETRY = RetryConfig(max_attempts=3, base_delay=0.2, max_delay=2.0)


class GoogleSheetsTableStore(RemoteTableStore):
    """Table store backed by one spreadsheet.

    ``batch_write`` sends every overwrite in a single ``values:batchUpdate``
    request. Sheets has no batched append, so append requests inside the same
    batch are sent one ``:append`` call each, after the overwrites.
    """

    name = "google-sheets"

    def __init__(
        self,
        spreadsheet_id: str,
        access_token: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        base_url: str = SHEETS_API_URL
    ):
        self.spreadsheet_id = spreadsheet_id
        self.base_url = f"{base_url.rstrip('/')}/{spreadsheet_id}"
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        self.client = client or httpx.AsyncClient(timeout=timeout, headers=headers)
        self.logger = get_logger("workspace.adapters.sheets")

    async def close(self):
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            self.logger.error("Sheets request failed", method=method, url=url, error=str(exc))
            raise RemoteUnavailable(self.name, str(exc) or exc.__class__.__name__, {"url": url})

        if response.status_code >= 400:
            self.logger.error(
                "Sheets request rejected",
                method=method,
                url=url,
                status_code=response.status_code,
                response=response.text[:500]
            )
            raise RemoteUnavailable(
                self.name,
                f"Unexpected status {response.status_code}",
                {"status_code": response.status_code, "url": url}
            )
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            self.logger.error(
                "Sheets response unreadable",
                method=method,
                url=url,
                status_code=response.status_code,
                response=response.text[:500]
            )
            raise RemoteUnavailable(
                self.name,
                "Malformed response body",
                {"status_code": response.status_code, "url": url}
            )
        return data

    @staticmethod
    def _values_path(key: str, suffix: str = "") -> str:
        return f"/values/{quote(key, safe='!:')}{suffix}"

    @retry_on_exception((RemoteUnavailable,), config=READ_RETRY)
    async def read_range(self, key: str) -> Rows:
        data = await self._request("GET", self._values_path(key), params={"majorDimension": "ROWS"})
        return data.get("values", [])

    async def write_range(self, key: str, rows: Rows) -> WriteAck:
        data = await self._request(
            "PUT",
            self._values_path(key),
            params={"valueInputOption": "USER_ENTERED"},
            json={"range": key, "majorDimension": "ROWS", "values": rows}
        )
        return WriteAck(key=key, updated_rows=data.get("updatedRows", len(rows)), updated_range=data.get("updatedRange"))

    async def append_rows(self, key: str, rows: Rows) -> WriteAck:
        data = await self._request(
            "POST",
            self._values_path(key, ":append"),
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            json={"majorDimension": "ROWS", "values": rows}
        )
        updates = data.get("updates", {})
        return WriteAck(key=key, updated_rows=updates.get("updatedRows", len(rows)), updated_range=updates.get("updatedRange"))

    async def batch_write(self, requests: Sequence[WriteRequest]) -> List[BatchWriteOutcome]:
        outcomes: List[Optional[BatchWriteOutcome]] = [None] * len(requests)

        overwrites = [(i, request) for i, request in enumerate(requests) if not request.append]
        if overwrites:
            data = await self._request(
                "POST",
                "/values:batchUpdate",
                json={
                    "valueInputOption": "USER_ENTERED",
                    "data": [
                        {"range": request.key, "majorDimension": "ROWS", "values": request.rows}
                        for _, request in overwrites
                    ]
                }
            )
            responses = data.get("responses", [])
            for position, (i, request) in enumerate(overwrites):
                response = responses[position] if position < len(responses) else {}
                outcomes[i] = WriteAck(
                    key=request.key,
                    updated_rows=response.get("updatedRows", len(request.rows)),
                    updated_range=response.get("updatedRange")
                )

        for i, request in enumerate(requests):
            if not request.append:
                continue
            try:
                outcomes[i] = await self.append_rows(request.key, request.rows)
            except RemoteUnavailable as exc:
                outcomes[i] = exc

        self.logger.debug("Batch written", requests=len(requests), overwrites=len(overwrites))
        return outcomes
