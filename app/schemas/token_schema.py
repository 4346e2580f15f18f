from pydantic import BaseModel
from typing import Optional

class TokenData(BaseModel):
    """Claims the billing service reads from a caller's bearer token."""
    sub: str
    role: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None

    @property
    def user_id(self) -> str:
        return self.sub
