"""Query and update Monarch Money data via its GraphQL API."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from .auth import Authenticator
from .config import MonarchConfig
from .errors import InvalidArgumentsError, RequestFailedError
from .monarch_models import (
    AccountsSyncStatusModel,
    AggregateSnapshotFiltersModel,
    BudgetItemInputModel,
    CreateCategoryInputModel,
    CreateManualAccountInputModel,
    CreateTransactionInputModel,
    MutationStatusModel,
    TransactionFiltersModel,
    UpdateAccountInputModel,
    UpdateTransactionInputModel,
)
from .polling import RetryPolicy, poll_until
from .request_builder import (
    DateRangeDefault,
    build_request,
    compact,
    days_ago,
    first_of_month,
    iso_date,
    require_exactly_one,
    resolve_date_range,
)
from .session import Session, delete_session, load_session, save_session
from .transport import HttpTransport, UploadFile


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from .auth import Authenticated, LoginResult
    from .transport import Transport


logger = logging.getLogger(__name__)

Data = dict[str, Any]  # pyright: ignore[reportExplicitAny]
DateLike = date | str

_UPLOAD_FILENAME = "upload.csv"
_TIMEFRAMES = ("year", "month")


class Monarch:
    """Async client for one Monarch Money login."""

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        config: MonarchConfig | None = None,
    ) -> None:
        """Initialize new instance.

        Args:
            transport: transport to use; by default an `HttpTransport` on a
                fresh `Session`.
            config: settings; `MonarchConfig()` if omitted. A `token` in the
                config authenticates the client right away.

        """
        self._config = config or MonarchConfig()
        if transport is None:
            transport = HttpTransport(Session(), self._config)
        if self._config.token:
            transport.session.set_token(self._config.token)
        self._transport = transport
        self._auth = Authenticator(transport, self._config.session_file)

    @classmethod
    def from_env(cls) -> Monarch:
        """Client configured from `MONARCH_*` environment variables."""
        return cls(config=MonarchConfig.from_env())

    @property
    def session(self) -> Session:
        return self._transport.session

    @property
    def token(self) -> str | None:
        return self.session.token

    def set_token(self, token: str) -> None:
        self.session.set_token(token)

    @property
    def timeout(self) -> int:
        """The timeout, in seconds, for every call."""
        return self._transport.timeout

    def set_timeout(self, timeout_secs: int) -> None:
        self._transport.timeout = timeout_secs

    # Authentication

    async def login(
        self,
        email: str | None = None,
        password: str | None = None,
        *,
        use_saved_session: bool = True,
        save_session: bool = True,
        mfa_secret_key: str | None = None,
    ) -> LoginResult:
        """Log in; see `Authenticator.login`."""
        return await self._auth.login(
            email,
            password,
            use_saved_session=use_saved_session,
            save_session=save_session,
            mfa_secret_key=mfa_secret_key,
        )

    async def multi_factor_authenticate(
        self, email: str, password: str, code: str, *, save_session: bool = True
    ) -> LoginResult:
        """Finish a login that returned `MfaRequired`."""
        return await self._auth.multi_factor_authenticate(
            email, password, code, save_session=save_session
        )

    async def interactive_login(
        self,
        prompt: Callable[[str], str] = input,
        *,
        use_saved_session: bool = True,
        save_session: bool = True,
    ) -> Authenticated:
        """Prompt for credentials on the console; see `Authenticator.interactive_login`."""
        return await self._auth.interactive_login(
            prompt, use_saved_session=use_saved_session, save_session=save_session
        )

    async def save_session(self) -> None:
        await save_session(self.session, self._config.session_file)

    async def load_session(self) -> None:
        await load_session(self.session, self._config.session_file)

    async def delete_session(self) -> None:
        await delete_session(self._config.session_file)

    # Accounts

    async def get_accounts(self) -> Data:
        """Accounts configured in the Monarch Money household."""
        return await self._call("GetAccounts", "getAccounts")

    async def get_account_type_options(self) -> Data:
        """Account types and subtypes available for manual accounts."""
        return await self._call("GetAccountTypeOptions", "getAccountTypeOptions")

    async def get_recent_account_balances(
        self, start_date: DateLike | None = None
    ) -> Data:
        """Daily balances of every account since `start_date`.

        Args:
            start_date: first day to include; 31 days ago if omitted.

        """
        return await self._call(
            "GetAccountRecentBalances",
            "getAccountRecentBalances",
            {"startDate": iso_date(start_date) if start_date else days_ago(31)},
        )

    async def get_account_holdings(self, account_id: str) -> Data:
        """Investment holdings of one brokerage account, as of today."""
        today = date.today().isoformat()
        return await self._call(
            "Web_GetHoldings",
            "getHoldings",
            {
                "input": {
                    "accountIds": [account_id],
                    "endDate": today,
                    "includeHiddenHoldings": True,
                    "startDate": today,
                }
            },
        )

    async def get_account_history(self, account_id: str) -> list[Data]:
        """Daily balance snapshots of one account.

        Returns:
            Snapshots, each annotated with `accountId` and `accountName`.

        """
        data = await self._call(
            "AccountDetails_getAccount", "getAccountHistory", {"id": account_id}
        )
        account_name = data["account"]["displayName"]
        return [
            {**snapshot, "accountId": account_id, "accountName": account_name}
            for snapshot in data["snapshots"]
        ]

    async def get_account_snapshots_by_type(
        self, start_date: DateLike, timeframe: str
    ) -> Data:
        """Balances per account type, aggregated by `timeframe`.

        Args:
            start_date: first day to include.
            timeframe: `"year"` or `"month"`.

        Raises:
            InvalidArgumentsError: for any other timeframe.

        """
        if timeframe not in _TIMEFRAMES:
            msg = f'Unknown timeframe "{timeframe}"'
            raise InvalidArgumentsError(msg)
        return await self._call(
            "GetSnapshotsByAccountType",
            "getSnapshotsByAccountType",
            {"startDate": iso_date(start_date), "timeframe": timeframe},
        )

    async def get_aggregate_snapshots(
        self,
        start_date: DateLike | None = None,
        end_date: DateLike | None = None,
        account_type: str | None = None,
    ) -> Data:
        """Daily net value of all accounts, optionally of one type.

        Args:
            start_date: first day; defaults to far enough back to cover all history.
            end_date: last day; the service default if omitted.
            account_type: restrict to this account type.

        """
        filters = AggregateSnapshotFiltersModel(
            startDate=(
                iso_date(start_date)
                if start_date
                else first_of_month(date.today(), -150 * 12).isoformat()
            ),
            endDate=iso_date(end_date) if end_date else None,
            accountType=account_type,
        )
        return await self._call(
            "GetAggregateSnapshots",
            "getAggregateSnapshots",
            {"filters": filters.model_dump(exclude_none=True)},
        )

    async def get_institutions(self) -> Data:
        """Linked institutions and their credentials."""
        return await self._call("Web_GetInstitutionSettings", "getInstitutionSettings")

    async def get_subscription_details(self) -> Data:
        return await self._call("GetSubscriptionDetails", "getSubscriptionDetails")

    async def create_manual_account(
        self,
        account_type: str,
        account_sub_type: str,
        is_in_net_worth: bool,
        account_name: str,
        account_balance: float = 0,
    ) -> Data:
        """Create an account that is not synced with any institution."""
        account = CreateManualAccountInputModel(
            type=account_type,
            subtype=account_sub_type,
            includeInNetWorth=is_in_net_worth,
            name=account_name,
            displayBalance=account_balance,
        )
        return await self._call(
            "Web_CreateManualAccount",
            "createManualAccount",
            {"input": account.model_dump()},
        )

    async def update_account(
        self,
        account_id: str,
        account_name: str | None = None,
        account_balance: float | None = None,
        account_type: str | None = None,
        account_sub_type: str | None = None,
        include_in_net_worth: bool | None = None,
        hide_from_summary_list: bool | None = None,
        hide_transactions_from_reports: bool | None = None,
    ) -> Data:
        """Update the settings of an account. Only arguments given are changed."""
        account = UpdateAccountInputModel(
            id=account_id,
            name=account_name,
            displayBalance=account_balance,
            type=account_type,
            subtype=account_sub_type,
            includeInNetWorth=include_in_net_worth,
            hideFromList=hide_from_summary_list,
            hideTransactionsFromReports=hide_transactions_from_reports,
        )
        return await self._call(
            "Common_UpdateAccount",
            "updateAccount",
            {"input": account.model_dump(exclude_none=True)},
        )

    async def delete_account(self, account_id: str) -> bool:
        """Delete an account.

        Raises:
            RequestFailedError: if the service did not delete it.

        """
        data = await self._call(
            "Common_DeleteAccount", "deleteAccount", {"id": account_id}
        )
        _raise_unless(data, "deleteAccount", "deleted")
        return True

    async def upload_account_balance_history(
        self, account_id: str, csv_content: str
    ) -> None:
        """Upload a CSV balance history for an account.

        Raises:
            InvalidArgumentsError: if either argument is empty.
            RequestFailedError: if the upload is rejected.

        """
        if not account_id or not csv_content:
            msg = "account_id and csv_content cannot be empty"
            raise InvalidArgumentsError(msg)
        _ = self.session.require_token()
        resp = await self._transport.upload(
            self._config.balance_history_upload_url,
            [UploadFile("files", _UPLOAD_FILENAME, csv_content, "text/csv")],
            {"account_files_mapping": json.dumps({_UPLOAD_FILENAME: account_id})},
        )
        if resp.status != HTTPStatus.OK:
            raise RequestFailedError(
                resp.body, f"HTTP Code {resp.status}: {resp.reason}"
            )

    async def request_accounts_refresh(self, account_ids: list[str]) -> bool:
        """Ask the service to sync accounts with their institutions.

        Raises:
            RequestFailedError: if the service refuses.

        """
        data = await self._call(
            "Common_ForceRefreshAccountsMutation",
            "forceRefreshAccounts",
            {"input": {"accountIds": account_ids}},
        )
        _raise_unless(data, "forceRefreshAccounts", "success")
        logger.info("Requested refresh of %d accounts", len(account_ids))
        return True

    async def is_accounts_refresh_complete(
        self, account_ids: Iterable[str] | None = None
    ) -> bool:
        """Whether no account, or none of `account_ids`, is still syncing.

        Raises:
            RequestFailedError: if the service returns no account list.

        """
        data = await self._call(
            "ForceRefreshAccountsQuery", "forceRefreshAccountsStatus"
        )
        accounts = AccountsSyncStatusModel.model_validate(data).accounts
        if accounts is None:
            raise RequestFailedError(None, "Unable to request status of refresh")
        if account_ids is not None:
            wanted = set(account_ids)
            accounts = [a for a in accounts if a.id in wanted]
        return all(not a.hasSyncInProgress for a in accounts)

    async def request_accounts_refresh_and_wait(
        self,
        account_ids: list[str] | None = None,
        timeout: float = 300,
        delay: float = 10,
    ) -> bool:
        """Refresh accounts and wait for the refresh to finish.

        Args:
            account_ids: accounts to refresh; all accounts if omitted.
            timeout: seconds to keep checking.
            delay: seconds between checks.

        Returns:
            True if every account finished within `timeout`, False otherwise.

        """
        ids = account_ids if account_ids is not None else await self._account_ids()
        _ = await self.request_accounts_refresh(ids)
        return await poll_until(
            lambda: self.is_accounts_refresh_complete(ids),
            RetryPolicy(interval=delay, timeout=timeout),
        )

    async def request_accounts_refresh_and_dont_wait(
        self, account_ids: list[str] | None = None
    ) -> bool:
        """Refresh accounts, all of them if `account_ids` is omitted."""
        ids = account_ids if account_ids is not None else await self._account_ids()
        return await self.request_accounts_refresh(ids)

    # Budgets

    async def get_budgets(
        self,
        start_date: DateLike | None = None,
        end_date: DateLike | None = None,
        use_legacy_goals: bool = False,
        use_v2_goals: bool = True,
    ) -> Data:
        """Budget amounts per category and month.

        Args:
            start_date: first month; give both dates or neither.
            end_date: last month; give both dates or neither.
            use_legacy_goals: include legacy goals.
            use_v2_goals: include goals.

        Without dates, the range spans the previous, current and next month.

        Raises:
            InvalidArgumentsError: if only one of the dates is given.

        """
        start, end = _require_range(
            start_date, end_date, DateRangeDefault.SURROUNDING_MONTHS
        )
        return await self._call(
            "GetJointPlanningData",
            "getJointPlanningData",
            {
                "startDate": start,
                "endDate": end,
                "useLegacyGoals": use_legacy_goals,
                "useV2Goals": use_v2_goals,
            },
        )

    async def set_budget_amount(
        self,
        amount: float,
        category_id: str | None = None,
        category_group_id: str | None = None,
        timeframe: str = "month",
        start_date: DateLike | None = None,
        apply_to_future: bool = False,
    ) -> Data:
        """Set the budget of a category or a category group.

        Args:
            amount: budgeted amount; 0 clears the budget.
            category_id: category to budget; exclusive with `category_group_id`.
            category_group_id: group to budget; exclusive with `category_id`.
            timeframe: budget period.
            start_date: first month; the current month if omitted.
            apply_to_future: also apply to later months.

        Raises:
            InvalidArgumentsError: unless exactly one id is given.

        """
        _ = require_exactly_one(
            category_id=category_id, category_group_id=category_group_id
        )
        item = BudgetItemInputModel(
            amount=amount,
            timeframe=timeframe,
            categoryId=category_id,
            categoryGroupId=category_group_id,
            applyToFuture=apply_to_future,
            startDate=(
                iso_date(start_date)
                if start_date
                else first_of_month(date.today()).isoformat()
            ),
        )
        return await self._call(
            "Common_UpdateBudgetItem",
            "updateBudgetItem",
            {"input": item.model_dump(exclude_none=True)},
        )

    # Transactions

    async def get_transactions(  # noqa: PLR0913
        self,
        limit: int = 100,
        offset: int = 0,
        start_date: DateLike | None = None,
        end_date: DateLike | None = None,
        search: str = "",
        category_ids: Iterable[str] = (),
        account_ids: Iterable[str] = (),
        tag_ids: Iterable[str] = (),
        has_attachments: bool | None = None,
        has_notes: bool | None = None,
        hidden_from_reports: bool | None = None,
        is_split: bool | None = None,
        is_recurring: bool | None = None,
        imported_from_mint: bool | None = None,
        synced_from_institution: bool | None = None,
    ) -> Data:
        """Transactions matching the filters, newest first.

        Boolean filters left as `None` are not sent. Without dates, no date
        filter is applied.

        Raises:
            InvalidArgumentsError: if only one of the dates is given.

        """
        date_range = resolve_date_range(start_date, end_date, DateRangeDefault.NONE)
        start, end = date_range or (None, None)
        filters = TransactionFiltersModel(
            search=search,
            categories=list(category_ids),
            accounts=list(account_ids),
            tags=list(tag_ids),
            startDate=start,
            endDate=end,
            hasAttachments=has_attachments,
            hasNotes=has_notes,
            hideFromReports=hidden_from_reports,
            isSplit=is_split,
            isRecurring=is_recurring,
            importedFromMint=imported_from_mint,
            syncedFromInstitution=synced_from_institution,
        )
        return await self._call(
            "GetTransactionsList",
            "getTransactionsList",
            {
                "offset": offset,
                "limit": limit,
                "orderBy": "date",
                "filters": filters.model_dump(exclude_none=True),
            },
        )

    async def get_transactions_summary(self) -> Data:
        """Aggregate statistics over all transactions."""
        return await self._call("GetTransactionsPage", "getTransactionsPage")

    async def get_recurring_transactions(
        self, start_date: DateLike | None = None, end_date: DateLike | None = None
    ) -> Data:
        """Upcoming recurring transactions; the current month without dates.

        Raises:
            InvalidArgumentsError: if only one of the dates is given.

        """
        start, end = _require_range(
            start_date, end_date, DateRangeDefault.CURRENT_MONTH
        )
        return await self._call(
            "Web_GetUpcomingRecurringTransactionItems",
            "getRecurringTransactionItems",
            {"startDate": start, "endDate": end},
        )

    async def get_transaction_details(
        self, transaction_id: str, redirect_posted: bool = True
    ) -> Data:
        return await self._call(
            "GetTransactionDrawer",
            "getTransactionDrawer",
            {"id": transaction_id, "redirectPosted": redirect_posted},
        )

    async def get_transaction_splits(self, transaction_id: str) -> Data:
        return await self._call(
            "TransactionSplitQuery", "getTransactionSplits", {"id": transaction_id}
        )

    async def update_transaction_splits(
        self, transaction_id: str, split_data: list[Mapping[str, object]] | None = None
    ) -> Data:
        """Replace the splits of a transaction.

        Args:
            transaction_id: transaction to split.
            split_data: splits with `merchantName`, `amount`, `categoryId`;
                empty or omitted removes all splits.

        """
        return await self._call(
            "Common_SplitTransactionMutation",
            "updateTransactionSplit",
            {
                "input": {
                    "transactionId": transaction_id,
                    "splitData": [dict(s) for s in split_data or []],
                }
            },
        )

    async def create_transaction(  # noqa: PLR0913
        self,
        date: DateLike,
        account_id: str,
        amount: float,
        merchant_name: str,
        category_id: str,
        notes: str = "",
        update_balance: bool = False,
    ) -> Data:
        """Create a manual transaction.

        Args:
            date: transaction date.
            account_id: account the transaction belongs to.
            amount: signed amount, rounded to cents.
            merchant_name: merchant to show.
            category_id: category to assign.
            notes: free text notes.
            update_balance: adjust the account balance by `amount`.

        """
        transaction = CreateTransactionInputModel(
            date=iso_date(date),
            accountId=account_id,
            amount=round(amount, 2),
            merchantName=merchant_name,
            categoryId=category_id,
            notes=notes,
            shouldUpdateBalance=update_balance,
        )
        return await self._call(
            "Common_CreateTransactionMutation",
            "createTransaction",
            {"input": transaction.model_dump()},
        )

    async def update_transaction(  # noqa: PLR0913
        self,
        transaction_id: str,
        category_id: str | None = None,
        merchant_name: str | None = None,
        goal_id: str | None = None,
        amount: float | None = None,
        date: DateLike | None = None,
        hide_from_reports: bool | None = None,
        needs_review: bool | None = None,
        notes: str | None = None,
    ) -> Data:
        """Update fields of a transaction. Only arguments given are changed."""
        transaction = UpdateTransactionInputModel(
            id=transaction_id,
            category=category_id,
            name=merchant_name,
            goalId=goal_id,
            amount=amount,
            date=iso_date(date) if date else None,
            hideFromReports=hide_from_reports,
            needsReview=needs_review,
            notes=notes,
        )
        return await self._call(
            "Web_TransactionDrawerUpdateTransaction",
            "updateTransaction",
            {"input": transaction.model_dump(exclude_none=True)},
        )

    async def delete_transaction(self, transaction_id: str) -> bool:
        """Delete a transaction.

        Raises:
            RequestFailedError: if the service did not delete it.

        """
        data = await self._call(
            "Common_DeleteTransactionMutation",
            "deleteTransaction",
            {"input": {"transactionId": transaction_id}},
        )
        _raise_unless(data, "deleteTransaction", "deleted")
        return True

    async def get_cashflow(
        self, start_date: DateLike | None = None, end_date: DateLike | None = None
    ) -> Data:
        """Income and expenses by category, group and merchant.

        Without dates, covers the current month.

        Raises:
            InvalidArgumentsError: if only one of the dates is given.

        """
        return await self._call(
            "Web_GetCashFlowPage",
            "getCashFlowPage",
            {"filters": _cashflow_filters(start_date, end_date)},
        )

    async def get_cashflow_summary(
        self, start_date: DateLike | None = None, end_date: DateLike | None = None
    ) -> Data:
        """Income, expense and savings totals; the current month without dates.

        Raises:
            InvalidArgumentsError: if only one of the dates is given.

        """
        return await self._call(
            "Web_GetCashFlowPage",
            "getCashFlowSummary",
            {"filters": _cashflow_filters(start_date, end_date)},
        )

    # Categories and tags

    async def get_transaction_categories(self) -> Data:
        return await self._call("GetCategories", "getCategories")

    async def get_transaction_category_groups(self) -> Data:
        return await self._call("ManageGetCategoryGroups", "getCategoryGroups")

    async def delete_transaction_category(self, category_id: str) -> bool:
        """Delete a category.

        Raises:
            RequestFailedError: if the service did not delete it.

        """
        data = await self._call(
            "Web_DeleteCategory", "deleteCategory", {"id": category_id}
        )
        _raise_unless(data, "deleteCategory", "deleted")
        return True

    async def delete_transaction_categories(
        self, category_ids: Iterable[str]
    ) -> list[bool | BaseException]:
        """Delete several categories concurrently.

        Returns:
            One entry per id, in order: `True`, or the exception that
            deleting that category raised.

        """
        return await asyncio.gather(
            *(self.delete_transaction_category(c) for c in category_ids),
            return_exceptions=True,
        )

    async def create_transaction_category(  # noqa: PLR0913
        self,
        group_id: str,
        transaction_category_name: str,
        rollover_start_month: DateLike | None = None,
        icon: str = "❓",
        rollover_enabled: bool = False,
        rollover_type: str = "monthly",
    ) -> Data:
        """Create a category in a category group.

        Args:
            group_id: category group to add to.
            transaction_category_name: name of the new category.
            rollover_start_month: first rollover month; the current month if omitted.
            icon: emoji shown with the category.
            rollover_enabled: carry unspent budget over to the next month.
            rollover_type: rollover period.

        """
        category = CreateCategoryInputModel(
            group=group_id,
            name=transaction_category_name,
            icon=icon,
            rolloverEnabled=rollover_enabled,
            rolloverType=rollover_type,
            rolloverStartMonth=(
                iso_date(rollover_start_month)
                if rollover_start_month
                else first_of_month(date.today()).isoformat()
            ),
        )
        return await self._call(
            "Web_CreateCategory", "createCategory", {"input": category.model_dump()}
        )

    async def get_transaction_tags(self) -> Data:
        return await self._call("GetHouseholdTransactionTags", "getTransactionTags")

    async def create_transaction_tag(self, name: str, color: str) -> Data:
        """Create a tag; `color` is a hex RGB string such as `#19D2A5`."""
        return await self._call(
            "Common_CreateTransactionTag",
            "createTransactionTag",
            {"input": {"name": name, "color": color}},
        )

    async def set_transaction_tags(
        self, transaction_id: str, tag_ids: list[str]
    ) -> Data:
        """Replace the tags of a transaction; an empty list removes all tags."""
        return await self._call(
            "Web_SetTransactionTags",
            "setTransactionTags",
            {"input": {"transactionId": transaction_id, "tagIds": tag_ids}},
        )

    async def _account_ids(self) -> list[str]:
        data = await self.get_accounts()
        return [a["id"] for a in data["accounts"]]

    async def _call(
        self,
        operation: str,
        template: str,
        variables: Mapping[str, object] | None = None,
    ) -> Data:
        request = build_request(operation, template, compact(variables or {}))
        _ = self.session.require_token()
        return await self._transport.execute(request)


def _require_range(
    start_date: DateLike | None, end_date: DateLike | None, default: DateRangeDefault
) -> tuple[str, str]:
    date_range = resolve_date_range(start_date, end_date, default)
    assert date_range is not None  # noqa: S101
    return date_range


def _cashflow_filters(
    start_date: DateLike | None, end_date: DateLike | None
) -> dict[str, object]:
    start, end = _require_range(start_date, end_date, DateRangeDefault.CURRENT_MONTH)
    return TransactionFiltersModel(startDate=start, endDate=end).model_dump(
        exclude_none=True
    )


def _raise_unless(data: Data, field: str, flag: str) -> None:
    status = MutationStatusModel.model_validate(data.get(field) or {})
    if not getattr(status, flag):
        raise RequestFailedError(status.errors)
