"""Credential lookup: environment first, then the 1Password CLI."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable, Mapping

from sitepulse.errors import CredentialUnavailable

logger = logging.getLogger(__name__)

SECRET_MANAGER_TIMEOUT = 30  # seconds

Runner = Callable[..., subprocess.CompletedProcess]


class SecretResolver:
    """Resolves API credentials once and keeps them for the resolver's lifetime."""

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        runner: Runner = subprocess.run,
    ) -> None:
        self._environ = environ if environ is not None else os.environ
        self._runner = runner
        self._cache: dict[str, str] = {}

    def resolve(self, env_var: str, secret_query: str) -> str:
        """Return the credential for *env_var*, asking ``op`` as a fallback.

        Raises:
            CredentialUnavailable: the variable is unset and ``op read``
                failed or printed nothing.
        """
        if env_var in self._cache:
            return self._cache[env_var]

        value = self._environ.get(env_var)
        if value:
            self._cache[env_var] = value
            return value

        logger.info("%s not found in environment, trying 1Password...", env_var)
        try:
            result = self._runner(
                ["op", "read", secret_query],
                capture_output=True,
                text=True,
                check=True,
                timeout=SECRET_MANAGER_TIMEOUT,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.error("Error retrieving %s from 1Password: %s", env_var, exc)
            raise CredentialUnavailable(env_var, exc) from exc

        secret = (result.stdout or "").strip()
        if not secret:
            raise CredentialUnavailable(env_var, "secret manager returned an empty value")

        self._cache[env_var] = secret
        return secret

    def cached(self, env_var: str) -> bool:
        """Whether *env_var* has already been resolved."""
        return env_var in self._cache
