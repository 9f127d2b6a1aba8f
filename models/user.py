from pydantic import BaseModel
from typing import Optional


class UserContext(BaseModel):
    email: str
    tenant_id: Optional[str] = None
