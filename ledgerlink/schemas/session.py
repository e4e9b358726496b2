from pydantic import BaseModel
from typing import Optional


class SessionCreate(BaseModel):
    token: str
    user: Optional[dict] = None


class SessionInfo(BaseModel):
    authenticated: bool
    user: Optional[dict] = None
    selected_company_id: Optional[str] = None


class CompanySelection(BaseModel):
    company_id: Optional[str] = None
