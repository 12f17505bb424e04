from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field


class FilterSpecModel(BaseModel):
    selected_products: Union[Literal["all"], List[str]] = "all"
    selected_retailers: Union[Literal["all"], List[str]] = "all"
    date_mode: Literal["all", "month", "custom"] = "all"
    month: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ViewRequest(BaseModel):
    filters: FilterSpecModel = Field(default_factory=FilterSpecModel)
    comparison: Optional[FilterSpecModel] = None


class DemographicsRequest(BaseModel):
    filters: FilterSpecModel = Field(default_factory=FilterSpecModel)
    question_number: Optional[str] = None
    selected_responses: List[str] = Field(default_factory=list)
    age_groups: Union[Literal["all"], List[str]] = "all"
    genders: Union[Literal["all"], List[str]] = "all"


class BrandingModel(BaseModel):
    show_logo: bool = True
    primary_color: str = "#FF0066"
    company_name: str = "Your Company"


class ShareConfigModel(BaseModel):
    allowed_tabs: List[str] = Field(default_factory=lambda: ["summary"])
    active_tab: Optional[str] = None
    hide_retailers: bool = False
    hide_totals: bool = False
    show_only_percent: bool = False
    custom_excluded_dates: List[date] = Field(default_factory=list)
    hidden_charts: List[str] = Field(default_factory=list)
    branding: BrandingModel = Field(default_factory=BrandingModel)
    client_note: str = ""
    client_name: Optional[str] = None
    brand_names: List[str] = Field(default_factory=list)
    expiry_date: Optional[datetime] = None
    filters: FilterSpecModel = Field(default_factory=FilterSpecModel)
    include_records: bool = False
