from pydantic import BaseModel
from datetime import date
from typing import Optional


class DateRange(BaseModel):
    from_date: Optional[date] = None
    to_date: Optional[date] = None


class FilterState(BaseModel):
    company_id: Optional[str] = None  # None means all companies
    date_range: DateRange = DateRange()
    selected_counterparty_id: Optional[str] = None
