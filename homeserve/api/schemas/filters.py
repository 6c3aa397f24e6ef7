"""
Pydantic v2 schemas for customer filter selections.

A selection is a tagged union keyed by ``filter_type``; each variant checks
the values it carries.  Requests that omit ``filter_type`` are read as
``multi_select``, the most permissive selection shape.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Discriminator, Field, Tag, field_validator


class _SelectionBase(BaseModel):
    filter_id: Optional[int] = Field(default=None, description="Service filter id")
    filter_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("selected_values", check_fields=False)
    @classmethod
    def strip_values(cls, values: list[str]) -> list[str]:
        cleaned = [v.strip() for v in values]
        if any(not v for v in cleaned):
            raise ValueError("selected values must not be blank")
        return cleaned


class SingleSelectSelection(_SelectionBase):
    filter_type: Literal["single_select"] = "single_select"
    selected_values: list[str] = Field(..., min_length=1, max_length=1)


class DropdownSelection(_SelectionBase):
    filter_type: Literal["dropdown"] = "dropdown"
    selected_values: list[str] = Field(..., min_length=1, max_length=1)


class MultiSelectSelection(_SelectionBase):
    filter_type: Literal["multi_select"] = "multi_select"
    selected_values: list[str] = Field(..., min_length=1)


class TextSelection(_SelectionBase):
    filter_type: Literal["text"] = "text"
    selected_values: list[str] = Field(..., min_length=1, max_length=1)


class DateSelection(_SelectionBase):
    filter_type: Literal["date"] = "date"
    selected_values: list[str] = Field(..., min_length=1, max_length=1)

    @field_validator("selected_values")
    @classmethod
    def check_iso_dates(cls, values: list[str]) -> list[str]:
        for value in values:
            date.fromisoformat(value)
        return values


def _selection_kind(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("filter_type") or "multi_select"
    return getattr(value, "filter_type", "multi_select")


FilterSelection = Annotated[
    Union[
        Annotated[SingleSelectSelection, Tag("single_select")],
        Annotated[DropdownSelection, Tag("dropdown")],
        Annotated[MultiSelectSelection, Tag("multi_select")],
        Annotated[TextSelection, Tag("text")],
        Annotated[DateSelection, Tag("date")],
    ],
    Discriminator(_selection_kind),
]


def selections_to_dicts(selections: list[Any]) -> list[dict[str, Any]]:
    return [s.model_dump() for s in selections]
