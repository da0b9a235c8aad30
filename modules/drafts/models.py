from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class ReportDraft(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = ""
    description: str = ""
    location: str = ""
    image_url: str = Field("", alias="imageUrl")


class DraftUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")
