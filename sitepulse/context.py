"""Process-wide context: settings, resolved credentials and client factories."""

from __future__ import annotations

import os
from collections import ChainMap
from typing import Optional

import httpx

from sitepulse.api_logger import ApiLogger
from sitepulse.config import Settings
from sitepulse.credentials import SecretResolver
from sitepulse.plausible_client import PlausibleClient
from sitepulse.vercel_client import VercelClient


class AppContext:
    """Built once at startup and passed to whatever needs a client.

    Credentials are resolved on first use and kept for the lifetime of the
    context. *transport* replaces the network layer of every client built
    here.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        secrets: Optional[SecretResolver] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.secrets = secrets or SecretResolver(ChainMap(settings.credential_env(), os.environ))
        self.transport = transport
        self._api_loggers: dict[str, ApiLogger] = {}

    def api_logger(self, service: str) -> ApiLogger:
        if service not in self._api_loggers:
            self._api_loggers[service] = ApiLogger(
                service,
                base_dir=self.settings.api_log_dir,
                enabled=self.settings.api_debug,
            )
        return self._api_loggers[service]

    def plausible_api_key(self) -> str:
        return self.secrets.resolve("PLAUSIBLE_API_KEY", self.settings.plausible_secret_ref)

    def vercel_api_token(self) -> str:
        return self.secrets.resolve("VERCEL_API_TOKEN", self.settings.vercel_secret_ref)

    def plausible_client(self) -> PlausibleClient:
        return PlausibleClient(
            self.plausible_api_key(),
            self.settings.plausible_api_url,
            timeout=self.settings.request_timeout,
            max_pages=self.settings.max_pages,
            api_logger=self.api_logger("plausible"),
            transport=self.transport,
        )

    def vercel_client(self) -> VercelClient:
        return VercelClient(
            self.vercel_api_token(),
            self.settings.vercel_api_url,
            timeout=self.settings.request_timeout,
            api_logger=self.api_logger("vercel"),
            transport=self.transport,
        )
