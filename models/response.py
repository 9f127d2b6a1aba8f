from pydantic import BaseModel
from typing import Any


class APIResponse(BaseModel):
    data: Any = None
    message: str = "Success"
    status_code: int = 200
