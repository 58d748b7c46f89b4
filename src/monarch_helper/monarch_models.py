"""Monarch request and response objects. Use with caution."""

# ruff: noqa: N815  # mixed-case-variable-in-class-scope
# ruff: noqa: D101  # Missing docstring in public class

from typing import Any

from pydantic import BaseModel, ConfigDict


class GraphQLRequestModel(BaseModel):
    """A single GraphQL call, immutable once built."""

    model_config = ConfigDict(extra="forbid", frozen=True)
    operationName: str
    query: str
    variables: dict[str, Any]  # pyright: ignore[reportExplicitAny]


class LoginReqModel(BaseModel):
    """Body posted to the login endpoint."""

    model_config = ConfigDict(extra="forbid", strict=True)
    username: str
    password: str
    supports_mfa: bool = True
    trusted_device: bool = False
    totp: str | None = None


class LoginRespModel(BaseModel):
    """Login endpoint response. Only `token` is present on success."""

    token: str | None = None
    error_code: str | None = None
    detail: str | None = None


class SessionFileModel(BaseModel):
    """Saved session file contents."""

    model_config = ConfigDict(strict=True)
    token: str


class MutationStatusModel(BaseModel):
    """Status part of a mutation payload that reports success or deletion."""

    deleted: bool | None = None
    success: bool | None = None
    errors: Any = None  # pyright: ignore[reportExplicitAny]


class AccountSyncStatusModel(BaseModel):
    id: str
    hasSyncInProgress: bool


class AccountsSyncStatusModel(BaseModel):
    accounts: list[AccountSyncStatusModel] | None = None


class TransactionFiltersModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    search: str = ""
    categories: list[str] = []
    accounts: list[str] = []
    tags: list[str] = []
    startDate: str | None = None
    endDate: str | None = None
    hasAttachments: bool | None = None
    hasNotes: bool | None = None
    hideFromReports: bool | None = None
    isSplit: bool | None = None
    isRecurring: bool | None = None
    importedFromMint: bool | None = None
    syncedFromInstitution: bool | None = None


class AggregateSnapshotFiltersModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    startDate: str
    endDate: str | None = None
    accountType: str | None = None


class UpdateTransactionInputModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    id: str
    category: str | None = None
    name: str | None = None
    goalId: str | None = None
    amount: float | None = None
    date: str | None = None
    hideFromReports: bool | None = None
    needsReview: bool | None = None
    notes: str | None = None


class CreateTransactionInputModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    date: str
    accountId: str
    amount: float
    merchantName: str
    categoryId: str
    notes: str = ""
    shouldUpdateBalance: bool = False


class CreateManualAccountInputModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    type: str
    subtype: str
    includeInNetWorth: bool
    name: str
    displayBalance: float = 0


class UpdateAccountInputModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    id: str
    name: str | None = None
    displayBalance: float | None = None
    type: str | None = None
    subtype: str | None = None
    includeInNetWorth: bool | None = None
    hideFromList: bool | None = None
    hideTransactionsFromReports: bool | None = None


class CreateCategoryInputModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    group: str
    name: str
    icon: str
    rolloverEnabled: bool
    rolloverType: str
    rolloverStartMonth: str


class BudgetItemInputModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    amount: float
    timeframe: str
    categoryId: str | None = None
    categoryGroupId: str | None = None
    applyToFuture: bool
    startDate: str
