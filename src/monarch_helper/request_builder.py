"""Building GraphQL requests: templates, argument checks and defaults."""

from __future__ import annotations

import calendar
import functools
from datetime import date, timedelta
from enum import Enum
from importlib.resources import files
from typing import TYPE_CHECKING, cast

import pystache  # pyright: ignore[reportMissingTypeStubs]

from .errors import InvalidArgumentsError
from .monarch_models import GraphQLRequestModel


if TYPE_CHECKING:
    from collections.abc import Mapping

_TEMPLATES_DIR = "monarch-templates"
_TEMPLATE_SUFFIX = ".graphql.mustache"


class DateRangeDefault(Enum):
    """What an operation uses when neither end of a date range is given."""

    NONE = "none"
    """Leave the range out; the service applies its own default."""
    CURRENT_MONTH = "current_month"
    """First through last day of the current month."""
    SURROUNDING_MONTHS = "surrounding_months"
    """First day of the previous month through last day of the next month."""


def iso_date(d: date | str) -> str:
    """Normalize a `date` or `YYYY-MM-DD` string to `YYYY-MM-DD`.

    Raises:
        InvalidArgumentsError: if a string is not an ISO date.

    """
    if isinstance(d, date):
        return d.isoformat()
    try:
        return date.fromisoformat(d).isoformat()
    except ValueError as e:
        msg = f"Invalid date {d!r}, expected YYYY-MM-DD"
        raise InvalidArgumentsError(msg) from e


def first_of_month(d: date, months: int = 0) -> date:
    """First day of the month `months` away from the month of `d`."""
    index = d.year * 12 + d.month - 1 + months
    return date(index // 12, index % 12 + 1, 1)


def last_of_month(d: date, months: int = 0) -> date:
    """Last day of the month `months` away from the month of `d`."""
    first = first_of_month(d, months)
    return first.replace(day=calendar.monthrange(first.year, first.month)[1])


def resolve_date_range(
    start: date | str | None,
    end: date | str | None,
    default: DateRangeDefault,
    today: date | None = None,
) -> tuple[str, str] | None:
    """Check a start/end pair and fill in the operation default.

    Args:
        start: inclusive start, or `None`.
        end: inclusive end, or `None`.
        default: rule applied when both are `None`.
        today: reference date, defaults to the local current date.

    Returns:
        ISO `(start, end)`, or `None` if the range should be left out.

    Raises:
        InvalidArgumentsError: if exactly one of `start` and `end` is given.

    """
    if (start is None) != (end is None):
        msg = "You must specify both a start_date and end_date, not just one of them."
        raise InvalidArgumentsError(msg)
    if start is not None and end is not None:
        return iso_date(start), iso_date(end)
    today = today or date.today()
    if default is DateRangeDefault.CURRENT_MONTH:
        return first_of_month(today).isoformat(), last_of_month(today).isoformat()
    if default is DateRangeDefault.SURROUNDING_MONTHS:
        return (
            first_of_month(today, -1).isoformat(),
            last_of_month(today, 1).isoformat(),
        )
    return None


def days_ago(days: int, today: date | None = None) -> str:
    return ((today or date.today()) - timedelta(days=days)).isoformat()


def require_exactly_one(**ids: object) -> tuple[str, object]:
    """Check that exactly one of several alternative identifiers is set.

    Returns:
        `(name, value)` of the identifier that was given.

    Raises:
        InvalidArgumentsError: if none or more than one is set.

    """
    given = [(k, v) for k, v in ids.items() if v is not None]
    if len(given) != 1:
        msg = f"You must specify exactly one of {' or '.join(ids)}"
        raise InvalidArgumentsError(msg)
    return given[0]


def compact(values: Mapping[str, object]) -> dict[str, object]:
    """Drop entries left unset so the service applies its own default."""
    return {k: v for k, v in values.items() if v is not None}


def build_request(
    operation: str, template: str, variables: Mapping[str, object] | None = None
) -> GraphQLRequestModel:
    """Build the request for one operation.

    Args:
        operation: GraphQL operation name.
        template: template name under `monarch-templates`, without suffix.
        variables: operation variables, sent as given.

    Returns:
        Immutable request.

    """
    return GraphQLRequestModel(
        operationName=operation,
        query=render_query(template),
        variables=dict(variables or {}),
    )


@functools.cache
def render_query(template: str) -> str:
    """Render a query template with the shared fragment partials."""
    renderer = pystache.Renderer(partials=_partials(), missing_tags="strict")
    return cast(str, renderer.render(_read_template(template), {}))  # pyright: ignore[reportUnknownMemberType]


@functools.cache
def _partials() -> dict[str, str]:
    partials_dir = files("monarch_helper").joinpath(f"{_TEMPLATES_DIR}/partials")
    return {
        p.name.removesuffix(_TEMPLATE_SUFFIX): p.read_text()
        for p in partials_dir.iterdir()
        if p.name.endswith(_TEMPLATE_SUFFIX)
    }


def _read_template(template: str) -> str:
    return (
        files("monarch_helper")
        .joinpath(f"{_TEMPLATES_DIR}/{template}{_TEMPLATE_SUFFIX}")
        .read_text()
    )

