"""
HTTP client for the remote reporting API.

Blocking ``requests`` calls run through ``asyncio.to_thread`` so every
endpoint function in client/<module>.py is a coroutine and the await on the
network call is the only suspension point in the orchestrator's fetch path.

Failures are classified before they leave this module:

    connection error / timeout           → TransientFetchError
    status in RetryStrategy forcelist/5xx → TransientFetchError
    other 4xx                            → ClientRequestError
    2xx with a non-JSON body             → ContractViolationError
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import time
from pathlib import Path
from typing import Any

import requests

from client.errors import ClientRequestError, ContractViolationError, TransientFetchError
from utils.config import AppConfig
from utils.http import RetryStrategy, SessionManager

logger = logging.getLogger(__name__)


def _error_detail(response: requests.Response) -> str | None:
    """Extract the backend's ``detail`` message (FastAPI style) if any."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:500] or None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        return str(detail) if detail is not None else None
    return None


class ApiClient:
    """Thin wrapper around a pooled requests session bound to one base URL."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30,
        retry_strategy: RetryStrategy | None = None,
        session_manager: SessionManager | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_strategy = retry_strategy or RetryStrategy()
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._sessions = session_manager or SessionManager(headers=headers)
        if session_manager is not None:
            self._sessions.headers.update(headers)

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "ApiClient":
        return cls(cfg.api_base_url, token=cfg.api_token, timeout=cfg.api_timeout)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request_sync(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json_body: Any = None,
        files: Any = None,
        raw: bool = False,
    ) -> Any:
        """Perform one blocking request and return the decoded body.

        Args:
            method: HTTP verb.
            path: Path relative to ``base_url``.
            params: Flat query params (dict or list of tuples).
            json_body: JSON payload for POST/PUT.
            files: Multipart files mapping for uploads.
            raw: Return ``response.content`` bytes instead of decoding JSON.

        Raises:
            TransientFetchError, ClientRequestError, ContractViolationError
        """
        url = self._url(path)
        start = time.monotonic()
        try:
            response = self._sessions.session.request(
                method, url, params=params, json=json_body, files=files,
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransientFetchError(f"{method} {path} failed: {exc}") from exc
        except requests.RequestException as exc:
            raise ClientRequestError(f"{method} {path} could not be sent: {exc}") from exc

        duration_ms = (time.monotonic() - start) * 1000
        status = response.status_code
        logger.debug("%s %s -> %d (%.1f ms)", method, path, status, duration_ms)

        if status >= 400:
            detail = _error_detail(response)
            message = f"{method} {path} returned HTTP {status}"
            if self.retry_strategy.is_retryable_status(status):
                raise TransientFetchError(message, status_code=status, detail=detail)
            raise ClientRequestError(message, status_code=status, detail=detail)

        if raw:
            return response.content
        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ContractViolationError(
                f"{method} {path} returned a non-JSON body",
                status_code=status,
            ) from exc

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        return await asyncio.to_thread(self.request_sync, method, path, **kwargs)

    async def get(self, path: str, params: Any = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, payload: Any = None) -> Any:
        return await self.request("POST", path, json_body=payload)

    async def put(self, path: str, payload: Any = None) -> Any:
        return await self.request("PUT", path, json_body=payload)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def download(self, path: str, params: Any = None) -> bytes:
        return await self.request("GET", path, params=params, raw=True)

    def _upload_sync(self, path: str, file_path: Path) -> Any:
        content_type = (mimetypes.guess_type(file_path.name)[0]
                        or "application/octet-stream")
        with open(file_path, "rb") as fh:
            return self.request_sync(
                "POST", path, files={"file": (file_path.name, fh, content_type)},
            )

    async def upload(self, path: str, file_path: Path | str) -> Any:
        """POST a file as multipart ``file`` field."""
        file_path = Path(file_path)
        if not file_path.is_file():
            raise ClientRequestError(f"Upload file not found: {file_path}")
        return await asyncio.to_thread(self._upload_sync, path, file_path)

    def close(self) -> None:
        """Close the pooled session."""
        self._sessions.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
