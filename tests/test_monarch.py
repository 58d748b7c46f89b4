import json
from collections.abc import Awaitable, Callable
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from monarch_helper import (
    InvalidArgumentsError,
    Monarch,
    MonarchConfig,
    NotAuthenticatedError,
    ProtocolError,
    RequestFailedError,
)
from monarch_helper.monarch_models import GraphQLRequestModel
from monarch_helper.request_builder import first_of_month, last_of_month
from monarch_helper.transport import HttpResponse

from conftest import FakeTransport, load_testdata


DATE_RANGE_CALLS: dict[str, Callable[[Monarch, dict[str, str]], Awaitable[Any]]] = {
    "get_budgets": lambda m, kw: m.get_budgets(**kw),
    "get_transactions": lambda m, kw: m.get_transactions(**kw),
    "get_recurring_transactions": lambda m, kw: m.get_recurring_transactions(**kw),
    "get_cashflow": lambda m, kw: m.get_cashflow(**kw),
    "get_cashflow_summary": lambda m, kw: m.get_cashflow_summary(**kw),
}


@pytest.mark.asyncio
@pytest.mark.parametrize("operation", DATE_RANGE_CALLS)
@pytest.mark.parametrize(
    "dates", [{"start_date": "2024-01-01"}, {"end_date": "2024-01-31"}]
)
async def test_partial_date_range_fails_before_dispatch(
    monarch: Monarch,
    transport: FakeTransport,
    operation: str,
    dates: dict[str, str],
) -> None:
    with pytest.raises(InvalidArgumentsError):
        await DATE_RANGE_CALLS[operation](monarch, dates)
    assert transport.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "ids",
    [
        {},
        {"category_id": "c1", "category_group_id": "g1"},
    ],
)
async def test_budget_target_must_be_exactly_one(
    monarch: Monarch, transport: FakeTransport, ids: dict[str, str]
) -> None:
    with pytest.raises(
        InvalidArgumentsError,
        match="You must specify exactly one of category_id or category_group_id",
    ):
        _ = await monarch.set_budget_amount(100, **ids)
    assert transport.requests == []


@pytest.mark.asyncio
async def test_set_budget_amount_omits_unset_id(
    monarch: Monarch, transport: FakeTransport
) -> None:
    transport.responses["Common_UpdateBudgetItem"] = {"updateOrCreateBudgetItem": {}}

    _ = await monarch.set_budget_amount(250.0, category_group_id="g1")

    assert transport.requests[0].variables == {
        "input": {
            "amount": 250.0,
            "timeframe": "month",
            "categoryGroupId": "g1",
            "applyToFuture": False,
            "startDate": first_of_month(date.today()).isoformat(),
        }
    }


@pytest.mark.asyncio
async def test_requires_token_before_dispatch(session_file: Path) -> None:
    transport = FakeTransport()
    monarch = Monarch(transport, config=MonarchConfig(session_file=session_file))

    with pytest.raises(NotAuthenticatedError):
        _ = await monarch.get_accounts()
    with pytest.raises(NotAuthenticatedError):
        await monarch.upload_account_balance_history("a1", "date,balance\n")
    assert transport.requests == []
    assert transport.uploads == []


@pytest.mark.asyncio
async def test_get_accounts_passes_data_through(
    monarch: Monarch, transport: FakeTransport
) -> None:
    expected = await load_testdata("mock_get_accounts_response.json")
    transport.responses["GetAccounts"] = expected

    assert await monarch.get_accounts() == expected
    request = transport.requests[0]
    assert request.operationName == "GetAccounts"
    assert "fragment AccountFields on Account" in request.query
    assert transport.request_headers[0] == {
        "Client-Platform": "web",
        "Authorization": "Token T",
    }


@pytest.mark.asyncio
async def test_get_transactions_sends_only_set_filters(
    monarch: Monarch, transport: FakeTransport
) -> None:
    transport.responses["GetTransactionsList"] = {"allTransactions": {}}

    _ = await monarch.get_transactions(
        limit=10,
        start_date=date(2024, 1, 1),
        end_date="2024-01-31",
        account_ids=["a1"],
        has_notes=False,
    )

    assert transport.requests[0].variables == {
        "offset": 0,
        "limit": 10,
        "orderBy": "date",
        "filters": {
            "search": "",
            "categories": [],
            "accounts": ["a1"],
            "tags": [],
            "startDate": "2024-01-01",
            "endDate": "2024-01-31",
            "hasNotes": False,
        },
    }


@pytest.mark.asyncio
async def test_get_transactions_without_dates(
    monarch: Monarch, transport: FakeTransport
) -> None:
    transport.responses["GetTransactionsList"] = {"allTransactions": {}}

    _ = await monarch.get_transactions()

    filters = transport.requests[0].variables["filters"]
    assert "startDate" not in filters
    assert "endDate" not in filters


@pytest.mark.asyncio
async def test_cashflow_defaults_to_current_month(
    monarch: Monarch, transport: FakeTransport
) -> None:
    transport.responses["Web_GetCashFlowPage"] = {"summary": []}

    _ = await monarch.get_cashflow_summary()

    today = date.today()
    assert transport.requests[0].variables == {
        "filters": {
            "search": "",
            "categories": [],
            "accounts": [],
            "tags": [],
            "startDate": first_of_month(today).isoformat(),
            "endDate": last_of_month(today).isoformat(),
        }
    }


@pytest.mark.asyncio
async def test_budgets_default_to_surrounding_months(
    monarch: Monarch, transport: FakeTransport
) -> None:
    transport.responses["GetJointPlanningData"] = {"budgetData": {}}

    _ = await monarch.get_budgets()

    today = date.today()
    assert transport.requests[0].variables == {
        "startDate": first_of_month(today, -1).isoformat(),
        "endDate": last_of_month(today, 1).isoformat(),
        "useLegacyGoals": False,
        "useV2Goals": True,
    }


@pytest.mark.asyncio
async def test_aggregate_snapshots_omit_unset_filters(
    monarch: Monarch, transport: FakeTransport
) -> None:
    transport.responses["GetAggregateSnapshots"] = {"aggregateSnapshots": []}

    _ = await monarch.get_aggregate_snapshots(start_date="2020-01-01")

    assert transport.requests[0].variables == {"filters": {"startDate": "2020-01-01"}}


@pytest.mark.asyncio
async def test_snapshots_by_type_rejects_unknown_timeframe(
    monarch: Monarch, transport: FakeTransport
) -> None:
    with pytest.raises(InvalidArgumentsError, match='Unknown timeframe "week"'):
        _ = await monarch.get_account_snapshots_by_type("2024-01-01", "week")
    assert transport.requests == []


@pytest.mark.asyncio
async def test_update_transaction_sends_only_changes(
    monarch: Monarch, transport: FakeTransport
) -> None:
    transport.responses["Web_TransactionDrawerUpdateTransaction"] = {
        "updateTransaction": {}
    }

    _ = await monarch.update_transaction("t1", amount=0, hide_from_reports=False)

    assert transport.requests[0].variables == {
        "input": {"id": "t1", "amount": 0, "hideFromReports": False}
    }


@pytest.mark.asyncio
async def test_create_transaction_rounds_amount(
    monarch: Monarch, transport: FakeTransport
) -> None:
    transport.responses["Common_CreateTransactionMutation"] = {"createTransaction": {}}

    _ = await monarch.create_transaction(
        date(2024, 2, 1), "a1", -12.346, "Coffee", "c1"
    )

    assert transport.requests[0].variables["input"] == {
        "date": "2024-02-01",
        "accountId": "a1",
        "amount": -12.35,
        "merchantName": "Coffee",
        "categoryId": "c1",
        "notes": "",
        "shouldUpdateBalance": False,
    }


@pytest.mark.asyncio
async def test_get_account_history_annotates_snapshots(
    monarch: Monarch, transport: FakeTransport
) -> None:
    transport.responses["AccountDetails_getAccount"] = await load_testdata(
        "mock_account_history_response.json"
    )

    history = await monarch.get_account_history("160820461792094418")

    assert history == await load_testdata("get_account_history_expected.json")


@pytest.mark.asyncio
async def test_delete_not_deleted_raises_with_remote_errors(
    monarch: Monarch, transport: FakeTransport
) -> None:
    response = await load_testdata("mock_delete_category_failed_response.json")
    transport.responses["Web_DeleteCategory"] = response

    with pytest.raises(RequestFailedError) as exc_info:
        _ = await monarch.delete_transaction_category("c1")
    assert exc_info.value.errors == response["deleteCategory"]["errors"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("operation", "method"),
    [
        ("Common_DeleteTransactionMutation", "delete_transaction"),
        ("Common_DeleteAccount", "delete_account"),
    ],
)
async def test_other_deletes_check_flag(
    monarch: Monarch, transport: FakeTransport, operation: str, method: str
) -> None:
    field = "deleteTransaction" if method == "delete_transaction" else "deleteAccount"
    errors = {"message": "nope", "code": "X", "fieldErrors": []}
    transport.responses[operation] = {field: {"deleted": False, "errors": errors}}

    with pytest.raises(RequestFailedError) as exc_info:
        _ = await getattr(monarch, method)("id1")
    assert exc_info.value.errors == errors

    transport.responses[operation] = {field: {"deleted": True, "errors": None}}
    assert await getattr(monarch, method)("id1") is True


@pytest.mark.asyncio
async def test_delete_categories_returns_outcome_per_id(
    monarch: Monarch, transport: FakeTransport
) -> None:
    def respond(request: GraphQLRequestModel) -> object:
        category_id = request.variables["id"]
        if category_id == "bad":
            return {"deleteCategory": {"deleted": False, "errors": ["in use"]}}
        if category_id == "boom":
            return ProtocolError("boom", [{"message": "boom"}])
        return {"deleteCategory": {"deleted": True, "errors": None}}

    transport.responses["Web_DeleteCategory"] = respond

    results = await monarch.delete_transaction_categories(["ok1", "bad", "boom", "ok2"])

    assert len(results) == 4
    assert results[0] is True
    assert isinstance(results[1], RequestFailedError)
    assert results[1].errors == ["in use"]
    assert isinstance(results[2], ProtocolError)
    assert results[3] is True


@pytest.mark.asyncio
async def test_refresh_failure_raises(monarch: Monarch, transport: FakeTransport) -> None:
    errors = {"message": "rate limited", "code": "LIMIT", "fieldErrors": []}
    transport.responses["Common_ForceRefreshAccountsMutation"] = {
        "forceRefreshAccounts": {"success": False, "errors": errors}
    }

    with pytest.raises(RequestFailedError) as exc_info:
        _ = await monarch.request_accounts_refresh(["a1"])
    assert exc_info.value.errors == errors


@pytest.mark.asyncio
async def test_refresh_complete_only_considers_requested_accounts(
    monarch: Monarch, transport: FakeTransport
) -> None:
    transport.responses["ForceRefreshAccountsQuery"] = {
        "accounts": [
            {"id": "a1", "hasSyncInProgress": False},
            {"id": "a2", "hasSyncInProgress": True},
        ]
    }

    assert await monarch.is_accounts_refresh_complete(["a1"])
    assert not await monarch.is_accounts_refresh_complete(["a1", "a2"])
    assert not await monarch.is_accounts_refresh_complete()


@pytest.mark.asyncio
async def test_refresh_status_without_accounts_raises(
    monarch: Monarch, transport: FakeTransport
) -> None:
    transport.responses["ForceRefreshAccountsQuery"] = {"accounts": None}

    with pytest.raises(RequestFailedError):
        _ = await monarch.is_accounts_refresh_complete()


def _refresh_responses(transport: FakeTransport, in_progress_checks: int) -> None:
    checks = 0

    def status(_: GraphQLRequestModel) -> object:
        nonlocal checks
        checks += 1
        syncing = checks <= in_progress_checks
        return {
            "accounts": [
                {"id": "160820461792094418", "hasSyncInProgress": syncing},
                {"id": "160820461792094419", "hasSyncInProgress": False},
            ]
        }

    transport.responses["Common_ForceRefreshAccountsMutation"] = {
        "forceRefreshAccounts": {"success": True, "errors": None}
    }
    transport.responses["ForceRefreshAccountsQuery"] = status


@pytest.mark.asyncio
async def test_refresh_and_wait_for_all_accounts(
    monarch: Monarch, transport: FakeTransport
) -> None:
    transport.responses["GetAccounts"] = await load_testdata(
        "mock_get_accounts_response.json"
    )
    _refresh_responses(transport, in_progress_checks=2)

    assert await monarch.request_accounts_refresh_and_wait(timeout=5, delay=0.01)

    operations = [r.operationName for r in transport.requests]
    assert operations == [
        "GetAccounts",
        "Common_ForceRefreshAccountsMutation",
        "ForceRefreshAccountsQuery",
        "ForceRefreshAccountsQuery",
        "ForceRefreshAccountsQuery",
    ]
    assert transport.requests[1].variables == {
        "input": {"accountIds": ["160820461792094418", "160820461792094419"]}
    }


@pytest.mark.asyncio
async def test_refresh_and_wait_times_out(
    monarch: Monarch, transport: FakeTransport
) -> None:
    _refresh_responses(transport, in_progress_checks=1000)

    assert not await monarch.request_accounts_refresh_and_wait(
        ["160820461792094418"], timeout=0.05, delay=0.01
    )


@pytest.mark.asyncio
async def test_refresh_and_dont_wait(monarch: Monarch, transport: FakeTransport) -> None:
    _refresh_responses(transport, in_progress_checks=0)

    assert await monarch.request_accounts_refresh_and_dont_wait(["a1"])
    assert [r.operationName for r in transport.requests] == [
        "Common_ForceRefreshAccountsMutation"
    ]


@pytest.mark.asyncio
async def test_upload_account_balance_history(
    monarch: Monarch, transport: FakeTransport
) -> None:
    await monarch.upload_account_balance_history("a1", "date,balance\n2024-01-01,10\n")

    url, files, fields = transport.uploads[0]
    assert url == "https://api.monarchmoney.com/account-balance-history/upload/"
    assert files[0].filename == "upload.csv"
    assert files[0].content_type == "text/csv"
    assert json.loads(fields["account_files_mapping"]) == {"upload.csv": "a1"}


@pytest.mark.asyncio
async def test_upload_rejections(monarch: Monarch, transport: FakeTransport) -> None:
    with pytest.raises(InvalidArgumentsError):
        await monarch.upload_account_balance_history("a1", "")
    assert transport.uploads == []

    transport.upload_response = HttpResponse(400, "Bad Request", {"detail": "bad csv"})
    with pytest.raises(RequestFailedError, match="HTTP Code 400: Bad Request"):
        await monarch.upload_account_balance_history("a1", "date,balance\n")


def test_set_timeout(monarch: Monarch, transport: FakeTransport) -> None:
    monarch.set_timeout(30)
    assert monarch.timeout == 30
    assert transport.timeout == 30
