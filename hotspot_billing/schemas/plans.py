"""Plan schemas for the captive portal."""

from typing import Optional

from pydantic import BaseModel, Field


class PlanResponse(BaseModel):
    """Plan as listed on the portal."""

    id: int
    price: int = Field(..., ge=0)
    duration: str = Field(..., description="Human readable length, e.g. '1 day'")
    profile_name: Optional[str] = None
    rate_limit: Optional[str] = None
    active: bool = True
