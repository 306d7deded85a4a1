"""HTTP adapter for the export job service."""

from __future__ import annotations

import re
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import ValidationError

from .config import ExportSettings
from .errors import ApplicationError, TransportError
from .models import (
    BatchResult,
    DownloadedFile,
    PrepareResult,
    ServiceResponse,
    SessionGrant,
)

TOKEN_HEADER = "X-Export-Token"

_FILENAME_RE = re.compile(r'filename="?([^";]+)"?')


def _ms(value: int) -> float:
    return value / 1000


class JobService(Protocol):
    """Operations the export controller needs from a job service."""

    async def prepare(self, token: str) -> PrepareResult: ...

    async def fetch_batch(self, token: str, batch: int) -> BatchResult: ...

    async def cancel(self, token: str) -> None: ...

    async def download(self, token: str) -> DownloadedFile: ...


class JobServiceClient:
    """Client for the four job service operations plus session bootstrap.

    Every call opens a short-lived :class:`httpx.AsyncClient`. Failures are
    raised as :class:`TransportError` (no usable answer) or
    :class:`ApplicationError` (the service reported a failure).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        settings: Optional[ExportSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or ExportSettings()
        self.base_url = (base_url or self.settings.job_service_url).rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, transport=self._transport)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        timeout_ms: int,
        token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        headers = {TOKEN_HEADER: token} if token is not None else None
        try:
            async with self._client() as client:
                return await client.request(
                    method,
                    path,
                    headers=headers,
                    json=json,
                    timeout=_ms(timeout_ms),
                )
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request to {path} timed out.", timed_out=True) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error: {exc}") from exc

    async def _call(
        self,
        path: str,
        *,
        timeout_ms: int,
        token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
        method: str = "POST",
    ) -> Dict[str, Any]:
        response = await self._request(method, path, timeout_ms=timeout_ms, token=token, json=json)
        try:
            envelope = ServiceResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise TransportError(
                f"Network error: unexpected response ({response.status_code}) from {path}"
            ) from exc

        if not envelope.success:
            raise ApplicationError(envelope.data.get("message") or "Unknown error")
        return envelope.data

    async def create_session(self) -> SessionGrant:
        """Obtain an authorization token and the service's pacing interval."""
        data = await self._call("/export/session", timeout_ms=self.settings.request_timeout_ms)
        try:
            return SessionGrant.model_validate(data)
        except ValidationError as exc:
            raise ApplicationError(f"Malformed session response: {exc.errors()[0]['msg']}") from exc

    async def prepare(self, token: str) -> PrepareResult:
        """Phase 1: build and cache the ranked result set server-side."""
        data = await self._call(
            "/export/start", token=token, timeout_ms=self.settings.prepare_timeout_ms
        )
        try:
            return PrepareResult.model_validate(data)
        except ValidationError as exc:
            raise ApplicationError(f"Malformed prepare response: {exc.errors()[0]['msg']}") from exc

    async def fetch_batch(self, token: str, batch: int) -> BatchResult:
        """Phase 2: have the service store one page of the ranked result set."""
        data = await self._call(
            "/export/batch",
            token=token,
            json={"batch": batch},
            timeout_ms=self.settings.batch_timeout_ms,
        )
        try:
            return BatchResult.model_validate(data)
        except ValidationError as exc:
            raise ApplicationError(f"Malformed batch response: {exc.errors()[0]['msg']}") from exc

    async def cancel(self, token: str) -> None:
        """Ask the service to drop its cached export data."""
        await self._call(
            "/export/cancel", token=token, timeout_ms=self.settings.request_timeout_ms
        )

    async def download(self, token: str) -> DownloadedFile:
        """Retrieve the assembled CSV file."""
        response = await self._request(
            "POST",
            "/export/download",
            token=token,
            timeout_ms=self.settings.request_timeout_ms,
        )
        if response.status_code >= 400:
            raise ApplicationError(_error_detail(response))

        disposition = response.headers.get("content-disposition", "")
        match = _FILENAME_RE.search(disposition)
        return DownloadedFile(
            filename=match.group(1) if match else "top-spenders.csv",
            content_type=response.headers.get("content-type", "text/csv"),
            content=response.content,
        )

    async def statistics(self, token: str) -> Dict[str, Any]:
        """Store-wide customer, order and revenue totals."""
        return await self._call(
            "/export/statistics",
            method="GET",
            token=token,
            timeout_ms=self.settings.request_timeout_ms,
        )


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"Download failed ({response.status_code})"
    if isinstance(payload, dict):
        if isinstance(payload.get("detail"), str):
            return payload["detail"]
        data = payload.get("data")
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
    return f"Download failed ({response.status_code})"


__all__ = ["JobService", "JobServiceClient", "TOKEN_HEADER"]
