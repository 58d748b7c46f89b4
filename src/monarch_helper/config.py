"""Client configuration.

Values come from keyword arguments or, via `MonarchConfig.from_env`, from the
environment:

- `MONARCH_TOKEN`: pre-obtained token, skips login entirely.
- `MONARCH_SESSION_FILE`: where the saved session lives.
- `MONARCH_TIMEOUT`: request timeout in seconds.
- `MONARCH_BASE_URL`: service root, mostly useful for tests.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import InvalidArgumentsError


if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_BASE_URL = "https://api.monarchmoney.com"
DEFAULT_TIMEOUT = 10
DEFAULT_SESSION_FILE = Path(".mm") / "mm_session.json"

ENV_TOKEN_KEY = "MONARCH_TOKEN"
ENV_SESSION_FILE_KEY = "MONARCH_SESSION_FILE"
ENV_TIMEOUT_KEY = "MONARCH_TIMEOUT"
ENV_BASE_URL_KEY = "MONARCH_BASE_URL"


@dataclass
class MonarchConfig:
    """Settings for a `Monarch` client."""

    base_url: str = DEFAULT_BASE_URL
    """Service root, without trailing slash."""
    timeout: int = DEFAULT_TIMEOUT
    """Timeout in seconds for every call."""
    session_file: Path = DEFAULT_SESSION_FILE
    """Saved session location."""
    token: str | None = None
    """Token to start with, if already known."""

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")
        self.session_file = Path(self.session_file)

    @property
    def login_url(self) -> str:
        return f"{self.base_url}/auth/login/"

    @property
    def graphql_url(self) -> str:
        return f"{self.base_url}/graphql"

    @property
    def balance_history_upload_url(self) -> str:
        return f"{self.base_url}/account-balance-history/upload/"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> MonarchConfig:
        """Build configuration from environment variables.

        Args:
            environ: mapping to read instead of `os.environ`.

        Returns:
            Configuration with defaults for anything not set.

        Raises:
            InvalidArgumentsError: if `MONARCH_TIMEOUT` is not a positive integer.

        """
        env = os.environ if environ is None else environ
        timeout = DEFAULT_TIMEOUT
        raw_timeout = env.get(ENV_TIMEOUT_KEY)
        if raw_timeout:
            try:
                timeout = int(raw_timeout)
            except ValueError as e:
                msg = f"{ENV_TIMEOUT_KEY} must be an integer, got {raw_timeout!r}"
                raise InvalidArgumentsError(msg) from e
            if timeout <= 0:
                msg = f"{ENV_TIMEOUT_KEY} must be positive, got {timeout}"
                raise InvalidArgumentsError(msg)
        return cls(
            base_url=env.get(ENV_BASE_URL_KEY) or DEFAULT_BASE_URL,
            timeout=timeout,
            session_file=Path(env.get(ENV_SESSION_FILE_KEY) or DEFAULT_SESSION_FILE),
            token=env.get(ENV_TOKEN_KEY) or None,
        )
