from typing import Optional

from pydantic import BaseModel, Field


class InfoRequest(BaseModel):
    # Optional so a missing url becomes a 400 InvalidRequest instead of a 422
    url: Optional[str] = Field(None, description="Video page URL")
