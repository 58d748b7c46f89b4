"""HTTP and GraphQL calls to the Monarch service."""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, cast

import aiohttp
from gql import Client, gql
from gql.transport.aiohttp import AIOHTTPTransport
from gql.transport.exceptions import (
    TransportError,
    TransportQueryError,
    TransportServerError,
)

from .errors import ProtocolError, TransportFailedError


if TYPE_CHECKING:
    from .config import MonarchConfig
    from .monarch_models import GraphQLRequestModel
    from .session import Session


logger = logging.getLogger(__name__)


@dataclass
class HttpResponse:
    """Status and decoded body of a plain HTTP call."""

    status: int
    reason: str | None = None
    body: dict[str, Any] = field(default_factory=dict)  # pyright: ignore[reportExplicitAny]
    """Decoded JSON body; empty if the body was not a JSON object."""


@dataclass(frozen=True)
class UploadFile:
    """A file part of a multipart upload."""

    name: str
    filename: str
    content: str
    content_type: str


class Transport(ABC):
    """Performs calls on behalf of one `Session`.

    Every call reads the session headers at dispatch time.
    """

    def __init__(self, session: Session, timeout: int) -> None:
        """Initialize new instance.

        Args:
            session: token holder whose headers are attached to every call.
            timeout: timeout in seconds for every call.

        """
        self.session = session
        self.timeout = timeout

    @abstractmethod
    async def post_login(self, payload: dict[str, object]) -> HttpResponse:
        """POST `payload` to the login endpoint; the status is not interpreted."""

    @abstractmethod
    async def execute(self, request: GraphQLRequestModel) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Run one GraphQL operation.

        Returns:
            The `data` part of the response.

        Raises:
            TransportFailedError: on network, timeout or HTTP errors.
            ProtocolError: if the service reports GraphQL errors.

        """

    @abstractmethod
    async def upload(
        self, url: str, files: list[UploadFile], fields: dict[str, str]
    ) -> HttpResponse:
        """POST a multipart form to `url`; the status is not interpreted."""


class HttpTransport(Transport):
    """`Transport` backed by aiohttp and gql."""

    def __init__(self, session: Session, config: MonarchConfig) -> None:
        super().__init__(session, config.timeout)
        self._config = config

    async def post_login(self, payload: dict[str, object]) -> HttpResponse:
        try:
            async with (
                aiohttp.ClientSession(
                    headers=self.session.headers, timeout=self._client_timeout()
                ) as s,
                s.post(self._config.login_url, json=payload) as resp,
            ):
                return HttpResponse(
                    status=resp.status,
                    reason=resp.reason,
                    body=_json_object(await resp.text()),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            msg = f"Login request failed: {e}"
            raise TransportFailedError(msg) from e

    async def execute(self, request: GraphQLRequestModel) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        transport = AIOHTTPTransport(
            url=self._config.graphql_url,
            headers=self.session.headers,
            timeout=self.timeout,
        )
        client = Client(
            transport=transport,
            fetch_schema_from_transport=False,
            execute_timeout=self.timeout,
        )
        logger.debug("Executing %s", request.operationName)
        try:
            return await client.execute_async(
                gql(request.query),
                variable_values=request.variables,
                operation_name=request.operationName,
            )
        except TransportQueryError as e:
            msg = f"{request.operationName} failed: {e}"
            raise ProtocolError(msg, cast(list[Any], e.errors or [])) from e  # pyright: ignore[reportExplicitAny]
        except TransportServerError as e:
            msg = f"{request.operationName} failed with HTTP code {e.code}"
            raise TransportFailedError(msg, e.code) from e
        except (TransportError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            msg = f"{request.operationName} failed: {e!r}"
            raise TransportFailedError(msg) from e

    async def upload(
        self, url: str, files: list[UploadFile], fields: dict[str, str]
    ) -> HttpResponse:
        form = aiohttp.FormData()
        for f in files:
            form.add_field(
                f.name, f.content, filename=f.filename, content_type=f.content_type
            )
        for name, value in fields.items():
            form.add_field(name, value)
        try:
            async with (
                aiohttp.ClientSession(
                    headers=self.session.headers, timeout=self._client_timeout()
                ) as s,
                s.post(url, data=form) as resp,
            ):
                return HttpResponse(
                    status=resp.status,
                    reason=resp.reason,
                    body=_json_object(await resp.text()),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            msg = f"Upload to {url} failed: {e}"
            raise TransportFailedError(msg) from e

    def _client_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.timeout)


def _json_object(text: str) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    try:
        parsed = cast(object, json.loads(text))
    except ValueError:
        return {}
    return cast(dict[str, Any], parsed) if isinstance(parsed, dict) else {}  # pyright: ignore[reportExplicitAny]
