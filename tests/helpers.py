from __future__ import annotations

from collections.abc import Iterator

import requests

from dashkit.timing.timespan import TimeSpan


class DummyResponse:
    """Stand-in for :class:`requests.Response` covering the attributes dashkit touches."""

    def __init__(self, content: bytes = b"", status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code
        self.closed = False

    def __enter__(self) -> "DummyResponse":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.closed = True

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    def iter_content(self, chunk_size: int = 8192) -> Iterator[bytes]:
        for idx in range(0, len(self.content), chunk_size):
            yield self.content[idx : idx + chunk_size]

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


def awaited_delays(sleeper) -> list[TimeSpan]:
    """Return the spans a patched ``wait`` was awaited with, in order."""

    return [call.args[0] for call in sleeper.await_args_list]
