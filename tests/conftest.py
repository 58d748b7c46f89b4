import json
from collections.abc import Callable
from pathlib import Path
from typing import Any, cast

import aiofiles
import pytest

from monarch_helper import Monarch, MonarchConfig, Session, Transport
from monarch_helper.monarch_models import GraphQLRequestModel
from monarch_helper.transport import HttpResponse, UploadFile


TESTDATA = Path(__file__).parent / "testdata"

Responder = Callable[[GraphQLRequestModel], object]


class FakeTransport(Transport):
    """Records every call and answers with canned responses by operation name."""

    def __init__(self, login_responses: list[HttpResponse] | None = None) -> None:
        super().__init__(Session(), timeout=10)
        self.responses: dict[str, object] = {}
        self.login_responses = list(login_responses or [])
        self.login_payloads: list[dict[str, object]] = []
        self.requests: list[GraphQLRequestModel] = []
        self.request_headers: list[dict[str, str]] = []
        self.uploads: list[tuple[str, list[UploadFile], dict[str, str]]] = []
        self.upload_response = HttpResponse(200, "OK")

    async def post_login(self, payload: dict[str, object]) -> HttpResponse:
        self.login_payloads.append(payload)
        return self.login_responses.pop(0)

    async def execute(self, request: GraphQLRequestModel) -> dict[str, Any]:
        self.requests.append(request)
        self.request_headers.append(self.session.headers)
        response = self.responses[request.operationName]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            response = cast(Responder, response)(request)
            if isinstance(response, BaseException):
                raise response
        return cast(dict[str, Any], response)

    async def upload(
        self, url: str, files: list[UploadFile], fields: dict[str, str]
    ) -> HttpResponse:
        self.uploads.append((url, files, fields))
        return self.upload_response


async def load_testdata(name: str) -> Any:
    async with aiofiles.open(TESTDATA / name) as f:
        content = await f.read()
        return json.loads(content)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def session_file(tmp_path: Path) -> Path:
    return tmp_path / ".mm" / "mm_session.json"


@pytest.fixture
def monarch(transport: FakeTransport, session_file: Path) -> Monarch:
    transport.session.set_token("T")
    return Monarch(transport, config=MonarchConfig(session_file=session_file))
