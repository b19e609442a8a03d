"""Settings loaded from environment variables and ``.env``."""

from __future__ import annotations

import sys
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Plausible
    plausible_api_url: str = "https://plausible.io/api"
    plausible_api_key: str = ""
    plausible_secret_ref: str = "op://Development/plausible api/notesPlain"

    # Vercel
    vercel_api_url: str = "https://api.vercel.com"
    vercel_api_token: str = ""
    vercel_secret_ref: str = "op://Development/vercel api/notesPlain"

    # HTTP behaviour
    request_timeout: float = 30.0
    max_pages: int = 100

    # API debug logging (API_DEBUG=1 or true)
    api_debug: bool = False
    api_log_dir: Path = Path("api_log")

    # Ollama (chat agent)
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "qwen3:1.7b"

    # MCP tool server
    mcp_transport: str = "stdio"
    mcp_host: str = "127.0.0.1"
    mcp_port: int = 8010
    mcp_server_command: str = ""
    mcp_server_args: list[str] = ["-m", "mcp_servers.plausible.server"]

    @property
    def server_command(self) -> str:
        """Executable used to spawn the tool server (defaults to this interpreter)."""
        return self.mcp_server_command or sys.executable

    def credential_env(self) -> dict[str, str]:
        """Credentials configured through settings, keyed by variable name."""
        return {
            name: value
            for name, value in (
                ("PLAUSIBLE_API_KEY", self.plausible_api_key),
                ("VERCEL_API_TOKEN", self.vercel_api_token),
            )
            if value
        }
