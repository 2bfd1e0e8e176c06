from typing import Literal

from pydantic_settings import BaseSettings

DEFAULT_TRUSTED_DOMAINS = [
    "dnd-tracker-next-js.fly.dev",
    "dnd-tracker.fly.dev",
    "dndtracker.com",
    "www.dndtracker.com",
]


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = "mongodb://localhost:27017/dnd-tracker"
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False
    production: bool = False  # Enables origin checks, secure cookies and cross-origin redirect allowlist
    base_url: str = "http://localhost:3000"  # Public URL of the application, used for post-login redirects
    trust_host: bool = False  # Accept the base URL even when it points to a local host in production
    trusted_origins: list[str] = ["localhost:3000", *DEFAULT_TRUSTED_DOMAINS]  # host[:port] or domain suffixes
    trusted_redirect_domains: list[str] = DEFAULT_TRUSTED_DOMAINS  # Cross-origin redirect targets allowed in production
    cors_origins: list[str] = []
    session_gate_strategy: Literal["format", "full"] = "full"
    session_cleanup_interval: float = 3600  # Seconds between expired session sweeps, 0 disables the sweeper
    auth_max_attempts: int = 3
    auth_backoff_base: float = 0.1  # Seconds, doubled on every transient failure
    auth_backoff_cap: float = 1.0
    auth_lag_backoff_base: float = 0.05  # Seconds to wait before re-reading a user that is missing
    bypass_email_verification: bool = False

    model_config = {
        "env_file": [".env"],
        "env_prefix": "DNDTRACKER_",
        "extra": "ignore",
    }
