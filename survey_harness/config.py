"""
Harness configuration

Settings for one harness instance: where the backoffice lives, how long a
request may take, and which bearer token (if any) to send. Values default
from the environment (and a local .env file), and the object is frozen:
switching tokens means building a new config with `with_token`.
"""
import os
from dataclasses import dataclass, field, replace
from typing import Optional

from dotenv import load_dotenv

DEFAULT_BASE_URL = "http://localhost:3001"
DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_LOGIN_PATH = "/login"


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return int(value)


@dataclass(frozen=True)
class HarnessConfig:
    """Immutable session settings for an ApiHarness"""
    base_url: str = field(
        default_factory=lambda: os.getenv("TEST_API_URL") or os.getenv("API_BASE_URL") or DEFAULT_BASE_URL
    )
    token: Optional[str] = None
    timeout_ms: int = field(default_factory=lambda: _env_int("API_TIMEOUT") or DEFAULT_TIMEOUT_MS)
    login_path: str = field(default_factory=lambda: os.getenv("API_LOGIN_PATH", DEFAULT_LOGIN_PATH))
    admin_username: str = field(default_factory=lambda: os.getenv("ADMIN_USERNAME", ""))
    admin_password: str = field(default_factory=lambda: os.getenv("ADMIN_PASSWORD", ""))
    faker_seed: Optional[int] = field(default_factory=lambda: _env_int("FAKER_SEED"))

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **overrides) -> "HarnessConfig":
        """
        Build a config from the process environment.

        Loads `env_file` (or ./.env) first without overriding variables that
        are already set, then applies keyword overrides on top.
        """
        load_dotenv(env_file or os.path.join(os.getcwd(), ".env"), override=False)
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return cls(**overrides)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    def with_token(self, token: Optional[str]) -> "HarnessConfig":
        return replace(self, token=token)

    def validate(self) -> "HarnessConfig":
        """Raise ValueError naming every setting a live run cannot do without."""
        missing = []
        if not self.base_url:
            missing.append("TEST_API_URL")
        if not self.admin_username:
            missing.append("ADMIN_USERNAME")
        if not self.admin_password:
            missing.append("ADMIN_PASSWORD")
        if missing:
            raise ValueError(f"Missing required harness settings: {', '.join(missing)}")
        if self.timeout_ms <= 0:
            raise ValueError(f"API_TIMEOUT must be positive, got {self.timeout_ms}")
        return self

    def __repr__(self) -> str:
        token = "set" if self.token else None
        return (
            f"HarnessConfig(base_url={self.base_url!r}, token={token!r}, "
            f"timeout_ms={self.timeout_ms}, login_path={self.login_path!r})"
        )
