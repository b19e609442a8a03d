"""Shared fixtures: settings isolated from the developer's .env and mock HTTP transports."""

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from sitepulse.config import Settings
from sitepulse.context import AppContext

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        plausible_api_key="test-plausible-key",
        vercel_api_token="test-vercel-token",
        api_log_dir=tmp_path / "api_log",
    )


@pytest.fixture()
def make_context(settings: Settings) -> Callable[[Handler], AppContext]:
    """Build an AppContext whose clients talk to *handler* instead of the network."""

    def _make(handler: Handler) -> AppContext:
        return AppContext(settings, transport=RecordingTransport(handler))

    return _make
