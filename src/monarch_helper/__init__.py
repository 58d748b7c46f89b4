r"""Read and update Monarch Money data via its GraphQL API.

## Usage

```python
from monarch_helper import Monarch, MfaRequired

monarch = Monarch()

result = await monarch.login("me@example.com", "password")
if isinstance(result, MfaRequired):
    result = await monarch.multi_factor_authenticate(
        "me@example.com", "password", input("Two Factor Code: ")
    )

accounts = await monarch.get_accounts()
for a in accounts["accounts"]:
    print(f"{a['displayName']}\t{a['currentBalance']}")

transactions = await monarch.get_transactions(
    start_date="2024-01-01", end_date="2024-01-31"
)
```

A successful login is saved to `.mm/mm_session.json` and reused by later
`login()` calls. Set `MONARCH_TOKEN` and use `Monarch.from_env()` to skip login
entirely.
"""

from .auth import (
    Authenticated,
    LoginFailed,
    LoginResult,
    MfaRequired,
    require_authenticated,
)
from .config import MonarchConfig
from .errors import (
    InvalidArgumentsError,
    LoginFailedError,
    MonarchError,
    NotAuthenticatedError,
    ProtocolError,
    RequestFailedError,
    RequireMFAError,
    SessionFileError,
    TransportFailedError,
)
from .monarch import Monarch
from .polling import RetryPolicy, poll_until
from .session import Session
from .transport import HttpTransport, Transport


__all__ = [  # noqa: RUF022
    "Monarch",
    "MonarchConfig",
    "Session",
    "Transport",
    "HttpTransport",
    "LoginResult",
    "Authenticated",
    "MfaRequired",
    "LoginFailed",
    "require_authenticated",
    "RetryPolicy",
    "poll_until",
    "MonarchError",
    "InvalidArgumentsError",
    "LoginFailedError",
    "NotAuthenticatedError",
    "ProtocolError",
    "RequestFailedError",
    "RequireMFAError",
    "SessionFileError",
    "TransportFailedError",
]
