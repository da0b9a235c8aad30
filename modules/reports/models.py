from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Mapping, Optional

from modules.identity.models import ANONYMOUS_NICKNAME
from modules.shared.utils import now_millis, as_text, as_optional_text, as_millis

# fields a well-formed remote record always carries
RECORD_FIELDS = ("type", "description", "location", "nickname", "timestamp")


class Report(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: Optional[str] = None
    type: str = ""
    description: str = ""
    location: str = ""
    image_url: Optional[str] = Field(None, alias="imageUrl")
    nickname: str = ANONYMOUS_NICKNAME
    timestamp: int = Field(default_factory=now_millis)

    def to_record(self) -> Dict[str, Any]:
        """Wire shape stored under the collection; the key is never part of it."""
        record = {
            "type": self.type,
            "description": self.description,
            "location": self.location,
            "nickname": self.nickname,
            "timestamp": self.timestamp,
        }
        if self.image_url is not None:
            record["imageUrl"] = self.image_url
        return record

    @classmethod
    def from_record(cls, key: str, record: Mapping[str, Any], now: int) -> "Report":
        return cls(
            id=key,
            type=as_text(record.get("type")),
            description=as_text(record.get("description")),
            location=as_text(record.get("location")),
            image_url=as_optional_text(record.get("imageUrl")),
            nickname=as_text(record.get("nickname"), default=ANONYMOUS_NICKNAME),
            timestamp=as_millis(record.get("timestamp"), default=now),
        )


class ReportSubmit(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = ""
    description: str = ""
    location: str = ""
    image_url: Optional[str] = Field(None, alias="imageUrl")


class ReportFeedState(BaseModel):
    model_config = ConfigDict(frozen=True)

    reports: List[Report] = Field(default_factory=list)
    is_loading: bool = False
    error: Optional[str] = None
