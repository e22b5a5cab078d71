from typing import Optional

from pydantic import BaseModel


class CurrentUser(BaseModel):
    id: str
    session_id: Optional[str] = None
