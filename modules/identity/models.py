from pydantic import BaseModel
from typing import Optional

ANONYMOUS_NICKNAME = "anonymous"


class UserIdentity(BaseModel):
    nickname: str = ""
    anonymous: bool = True

    @property
    def display_name(self) -> str:
        """Name stamped on submitted reports."""
        if self.anonymous or not self.nickname.strip():
            return ANONYMOUS_NICKNAME
        return self.nickname


class IdentityUpdate(BaseModel):
    nickname: Optional[str] = None
    anonymous: Optional[bool] = None
