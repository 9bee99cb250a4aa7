"""HTTP requests with exponential-backoff retries."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import requests

from dashkit.concurrency.backoff import BackoffCalculator, BackoffOptions, ExponentialBackoff
from dashkit.config.models import HttpSettings
from dashkit.timing.timespan import TimeSpan

DEFAULT_HEADERS: Mapping[str, str] = {
    "User-Agent": "dashkit/0.1",
    "Accept": "*/*",
}


def default_backoff() -> BackoffOptions:
    """Initial delay 5s, ceiling 30s, doubling."""
    return BackoffOptions(
        initial_delay=TimeSpan.from_seconds(5),
        max_delay=TimeSpan.from_seconds(30),
        factor=2,
    )


class RestRequest:
    """GET/POST helper that retries failed requests with exponential backoff.

    Each attempt runs :func:`requests.request` in a worker thread; transport
    errors and HTTP status codes >= 400 count as failures. When all retries
    are spent the last error is raised. With ``throw_exception`` the error is
    also reported to the event loop's exception handler.
    """

    def __init__(
        self,
        throw_exception: bool = False,
        backoff_options: BackoffOptions | None = None,
        *,
        timeout_seconds: float = 30.0,
        headers: Mapping[str, str] | None = None,
        calculator: BackoffCalculator | None = None,
    ) -> None:
        self.throw_exception = throw_exception
        self.timeout_seconds = timeout_seconds
        self.headers: dict[str, str] = dict(DEFAULT_HEADERS)
        if headers:
            self.headers.update(headers)
        self.backoff = ExponentialBackoff(
            backoff_options or default_backoff(),
            calculator=calculator,
            report_unhandled=throw_exception,
        )

    @classmethod
    def from_settings(cls, settings: HttpSettings) -> "RestRequest":
        return cls(
            settings.throw_exception,
            settings.backoff.to_options(),
            timeout_seconds=settings.timeout_seconds,
            headers=settings.headers,
        )

    async def get(self, url: str, **kwargs: Any) -> requests.Response:
        """GET `url`, retrying on failure."""
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, data: Any = None, json: Any = None, **kwargs: Any) -> requests.Response:
        """POST `data` or `json` to `url`, retrying on failure."""
        return await self.request("POST", url, data=data, json=json, **kwargs)

    async def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        return await self.backoff.execute(lambda: asyncio.to_thread(self._send, method, url, kwargs))

    async def download(self, url: str, dest: Path) -> Path:
        """Stream `url` into `dest`, replacing it only once the body is complete."""

        dest.parent.mkdir(parents=True, exist_ok=True)
        return await self.backoff.execute(lambda: asyncio.to_thread(self._download, url, dest))

    def _send(self, method: str, url: str, kwargs: Mapping[str, Any]) -> requests.Response:
        options = dict(kwargs)
        headers = dict(self.headers)
        headers.update(options.pop("headers", None) or {})
        options.setdefault("timeout", self.timeout_seconds)

        response = requests.request(method, url, headers=headers, **options)
        response.raise_for_status()
        return response

    def _download(self, url: str, dest: Path) -> Path:
        tmp_path = dest.with_suffix(dest.suffix + ".download")
        with requests.request(
            "GET",
            url,
            headers=dict(self.headers),
            timeout=self.timeout_seconds,
            stream=True,
        ) as response:
            if response.status_code == 404:
                raise FileNotFoundError(f"Source not found at {url}")
            response.raise_for_status()

            try:
                with tmp_path.open("wb") as handle:
                    for chunk in response.iter_content(chunk_size=8192):
                        if chunk:
                            handle.write(chunk)
            except BaseException:
                tmp_path.unlink(missing_ok=True)
                raise
        tmp_path.replace(dest)
        return dest


__all__ = ["DEFAULT_HEADERS", "RestRequest", "default_backoff"]
