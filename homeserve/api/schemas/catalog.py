"""
Pydantic v2 schemas for the service catalog API.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ServiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    base_price: Optional[Decimal] = None
    display_order: int = 0


class ServiceListResponse(BaseModel):
    success: bool = True
    data: list[ServiceOut]


class ServiceDetailResponse(BaseModel):
    success: bool = True
    data: ServiceOut
    active_providers: int


class ProviderCount(BaseModel):
    service_id: int
    active_providers: int


class ProviderCountsResponse(BaseModel):
    success: bool = True
    data: list[ProviderCount]


class FilterOptionOut(BaseModel):
    value: str
    label: str
    display_order: int
    price_modifier: float
    description: Optional[str] = None


class ServiceFilterOut(BaseModel):
    filter_id: int
    filter_name: str
    filter_label: str
    filter_type: str
    is_required: bool
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    display_order: int
    options: Optional[list[FilterOptionOut]] = None


class FilterSection(BaseModel):
    section_title: str
    section_description: Optional[str] = None
    section_order: int
    filters: list[ServiceFilterOut]


class ServiceFiltersResponse(BaseModel):
    success: bool = True
    service_id: int
    sections: list[FilterSection]
