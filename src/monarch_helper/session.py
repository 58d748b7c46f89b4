"""Bearer token state and its persistence to a local session file."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from .errors import NotAuthenticatedError, SessionFileError
from .monarch_models import SessionFileModel


logger = logging.getLogger(__name__)

AUTH_HEADER_KEY = "Authorization"
_BASE_HEADERS = {"Client-Platform": "web"}


class Session:
    """Token and default headers for one client.

    The header mapping is rebuilt and swapped in with a single assignment
    whenever the token changes, so readers never see a half-updated state.
    """

    def __init__(self, token: str | None = None) -> None:
        """Initialize new instance.

        Args:
            token: token to start with, e.g. from `MONARCH_TOKEN`.

        """
        self._token: str | None = None
        self._headers: dict[str, str] = dict(_BASE_HEADERS)
        self.saved_at: datetime | None = None
        """When the token was last written to or restored from disk."""
        if token:
            self.set_token(token)

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def headers(self) -> dict[str, str]:
        """Copy of the headers every call should carry."""
        return dict(self._headers)

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def set_token(self, token: str) -> None:
        """Replace the active token."""
        headers = dict(_BASE_HEADERS)
        headers[AUTH_HEADER_KEY] = f"Token {token}"
        self._token, self._headers = token, headers

    def require_token(self) -> str:
        """Return the active token.

        Raises:
            NotAuthenticatedError: if no token has been set.

        """
        if self._token is None:
            msg = "Make sure you call login() first or provide a session token!"
            raise NotAuthenticatedError(msg)
        return self._token


async def session_exists(path: Path) -> bool:
    return await aiofiles.os.path.isfile(path)


async def save_session(session: Session, path: Path) -> None:
    """Write the active token to `path`, creating parent directories.

    Raises:
        NotAuthenticatedError: if the session holds no token.

    """
    token = session.require_token()
    await aiofiles.os.makedirs(path.parent, exist_ok=True)
    async with aiofiles.open(path, "w") as f:
        _ = await f.write(SessionFileModel(token=token).model_dump_json())
    session.saved_at = datetime.now(timezone.utc)
    logger.info("Saved session to %s", path)


async def load_session(session: Session, path: Path) -> None:
    """Restore the token saved at `path` into `session`.

    Raises:
        SessionFileError: if the file cannot be read or is not a saved session.

    """
    try:
        async with aiofiles.open(path) as f:
            content = await f.read()
        saved = SessionFileModel.model_validate(json.loads(content))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        msg = f"Failed to load saved session from {path}"
        raise SessionFileError(msg) from e
    session.set_token(saved.token)
    session.saved_at = datetime.now(timezone.utc)
    logger.info("Using saved session found at %s", path)


async def delete_session(path: Path) -> None:
    """Remove the saved session, if there is one."""
    if await session_exists(path):
        await aiofiles.os.remove(path)
        logger.info("Deleted saved session %s", path)
