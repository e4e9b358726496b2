from pydantic import BaseModel
from typing import List, Optional


class Company(BaseModel):
    id: str
    business_name: str
    client_id: Optional[str] = None


class CompanyList(BaseModel):
    companies: List[Company]
    selected_company_id: Optional[str] = None
