"""
Filter Matching Algorithm
=========================

Scores how well a provider's advertised filter values cover a customer's
filter selection.

For every filter the customer selected, the provider selection with the
same ``filter_name`` is looked up; the filter counts as matched when the two
value sets share at least one value.  From the counts:

  - ``match_percentage`` = matched / total * 100 rounded half up, 0 when
    total is 0 (1 of 8 is 13)
  - ``match_type``:
      exact    -- every customer filter matched (and there was at least one)
      partial  -- strictly more than half matched
      none     -- anything else, including no filters at all

So 1 of 2 is ``none``: half is not more than half.

The algorithm is deterministic and independent of the order of either
input list.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping


class MatchType(str, enum.Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    NONE = "none"


@dataclass(frozen=True)
class FilterMatchDetail:
    filter_name: str
    customer_values: tuple[str, ...]
    provider_values: tuple[str, ...]
    matched: bool


@dataclass(frozen=True)
class FilterMatchResult:
    """Outcome of matching one provider against a customer selection."""

    match_type: MatchType
    match_percentage: int
    matched_filters: int
    total_filters: int
    details: tuple[FilterMatchDetail, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.match_type.value,
            "score": self.match_percentage,
            "total_matches": self.matched_filters,
            "total_filters": self.total_filters,
        }


NO_FILTERS = FilterMatchResult(
    match_type=MatchType.NONE,
    match_percentage=0,
    matched_filters=0,
    total_filters=0,
)


def percentage_of(matched: int, total: int) -> int:
    if total <= 0:
        return 0
    percent = Decimal(matched) * 100 / Decimal(total)
    return int(percent.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _read(selection: Any, key: str) -> Any:
    if isinstance(selection, Mapping):
        return selection.get(key)
    return getattr(selection, key, None)


def _values(raw: Any) -> set[str]:
    if raw is None:
        return set()
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
        raw = [raw]
    return {str(v) for v in raw if v is not None and str(v) != ""}


def _index_by_name(selections: Iterable[Any]) -> dict[str, set[str]]:
    """Map filter name -> union of selected values."""
    index: dict[str, set[str]] = {}
    for selection in selections:
        name = _read(selection, "filter_name")
        if not name:
            continue
        index.setdefault(str(name), set()).update(_values(_read(selection, "selected_values")))
    return index


def classify_match(matched: int, total: int) -> MatchType:
    if total > 0 and matched == total:
        return MatchType.EXACT
    if matched > total / 2:
        return MatchType.PARTIAL
    return MatchType.NONE


def match_filters(
    customer_filters: Iterable[Any] | None,
    provider_filters: Iterable[Any] | None,
) -> FilterMatchResult:
    """Match a customer's selection against a provider's advertised filters.

    Args:
        customer_filters: Selections as mappings or objects exposing
            ``filter_name`` and ``selected_values``.
        provider_filters: The provider's ``selected_filters`` list.  Any
            non-list value is treated as "advertises nothing".

    Returns:
        A ``FilterMatchResult`` whose percentage is always within [0, 100].
    """
    customer_index = _index_by_name(customer_filters or [])
    if not customer_index:
        return NO_FILTERS

    if not isinstance(provider_filters, (list, tuple)):
        provider_filters = []
    provider_index = _index_by_name(provider_filters)

    details: list[FilterMatchDetail] = []
    matched = 0
    for name in sorted(customer_index):
        wanted = customer_index[name]
        offered = provider_index.get(name, set())
        hit = bool(wanted & offered)
        if hit:
            matched += 1
        details.append(
            FilterMatchDetail(
                filter_name=name,
                customer_values=tuple(sorted(wanted)),
                provider_values=tuple(sorted(offered)),
                matched=hit,
            )
        )

    total = len(customer_index)
    return FilterMatchResult(
        match_type=classify_match(matched, total),
        match_percentage=percentage_of(matched, total),
        matched_filters=matched,
        total_filters=total,
        details=tuple(details),
    )
