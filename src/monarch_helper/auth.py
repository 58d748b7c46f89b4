"""Login handshake, including the multi-factor branch, and saved sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import TYPE_CHECKING

import oathtool  # pyright: ignore[reportMissingTypeStubs]
from pydantic import ValidationError

from .errors import LoginFailedError, RequireMFAError
from .monarch_models import LoginReqModel, LoginRespModel
from .session import load_session, session_exists
from .session import save_session as persist_session


if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from .transport import HttpResponse, Transport


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Authenticated:
    """Login succeeded; the session now holds `token`."""

    token: str
    restored: bool = False
    """True if the token came from the saved session file."""


@dataclass(frozen=True)
class MfaRequired:
    """The service wants a one-time code; call `multi_factor_authenticate`."""


@dataclass(frozen=True)
class LoginFailed:
    """Login was rejected."""

    status: int
    error_code: str | None
    message: str


LoginResult = Authenticated | MfaRequired | LoginFailed


def require_authenticated(result: LoginResult) -> Authenticated:
    """Turn a non-successful `LoginResult` into an exception.

    Raises:
        RequireMFAError: for `MfaRequired`.
        LoginFailedError: for `LoginFailed`.

    """
    if isinstance(result, MfaRequired):
        msg = "Multi-Factor Auth Required"
        raise RequireMFAError(msg)
    if isinstance(result, LoginFailed):
        raise LoginFailedError(result.message, result.status, result.error_code)
    return result


class Authenticator:
    """Drives login against the service and stores the token in the session."""

    def __init__(self, transport: Transport, session_file: Path) -> None:
        """Initialize new instance.

        Args:
            transport: transport whose session receives the token.
            session_file: saved session location.

        """
        self._transport = transport
        self.session_file = session_file

    async def login(
        self,
        email: str | None = None,
        password: str | None = None,
        *,
        use_saved_session: bool = True,
        save_session: bool = True,
        mfa_secret_key: str | None = None,
    ) -> LoginResult:
        """Log in, or restore the saved session.

        Args:
            email: account email.
            password: account password.
            use_saved_session: restore the saved session, if any, without
                touching the network.
            save_session: persist the token after a successful login.
            mfa_secret_key: shared TOTP secret; the one-time code is computed
                locally and sent with the first request.

        Returns:
            `Authenticated`, `MfaRequired` or `LoginFailed`.

        Raises:
            SessionFileError: if the saved session is corrupt.
            LoginFailedError: if credentials are missing and no saved session
                was used.
            TransportFailedError: if the login endpoint cannot be reached.

        """
        if use_saved_session and await session_exists(self.session_file):
            await load_session(self._transport.session, self.session_file)
            return Authenticated(self._transport.session.require_token(), restored=True)

        if email is None or password is None:
            msg = "Email and password are required to login when not using a saved session."
            raise LoginFailedError(msg)

        totp = oathtool.generate_otp(mfa_secret_key) if mfa_secret_key else None  # pyright: ignore[reportUnknownMemberType]
        resp = await self._post(email, password, totp)
        if resp.status == HTTPStatus.FORBIDDEN:
            logger.info("Login requires multi-factor authentication")
            return MfaRequired()
        return await self._finish(resp, save_session)

    async def multi_factor_authenticate(
        self, email: str, password: str, code: str, *, save_session: bool = True
    ) -> LoginResult:
        """Complete a login that returned `MfaRequired`.

        Args:
            email: account email.
            password: account password.
            code: one-time code from the user's authenticator.
            save_session: persist the token on success.

        Returns:
            `Authenticated` or `LoginFailed`.

        """
        resp = await self._post(email, password, code)
        return await self._finish(resp, save_session)

    async def interactive_login(
        self,
        prompt: Callable[[str], str] = input,
        *,
        use_saved_session: bool = True,
        save_session: bool = True,
    ) -> Authenticated:
        """Ask for credentials, and a one-time code if needed, via `prompt`.

        Raises:
            LoginFailedError: if the service rejects the credentials or code.

        """
        if use_saved_session and await session_exists(self.session_file):
            return require_authenticated(
                await self.login(use_saved_session=True, save_session=save_session)
            )
        email = prompt("Email: ")
        password = prompt("Password: ")
        result = await self.login(
            email, password, use_saved_session=False, save_session=save_session
        )
        if isinstance(result, MfaRequired):
            code = prompt("Two Factor Code: ")
            result = await self.multi_factor_authenticate(
                email, password, code, save_session=save_session
            )
        return require_authenticated(result)

    async def _post(
        self, email: str, password: str, totp: str | None
    ) -> HttpResponse:
        body = LoginReqModel(username=email, password=password, totp=totp)
        return await self._transport.post_login(body.model_dump(exclude_none=True))

    async def _finish(self, resp: HttpResponse, save_session: bool) -> LoginResult:
        try:
            parsed = LoginRespModel.model_validate(resp.body)
        except ValidationError:
            parsed = LoginRespModel()
        if resp.status != HTTPStatus.OK or parsed.token is None:
            message = (
                parsed.error_code
                or parsed.detail
                or f"HTTP Code {resp.status}: {resp.reason}"
            )
            logger.info("Login failed with HTTP code %d", resp.status)
            return LoginFailed(resp.status, parsed.error_code, message)

        self._transport.session.set_token(parsed.token)
        logger.info("Login succeeded")
        if save_session:
            await persist_session(self._transport.session, self.session_file)
        return Authenticated(parsed.token)

