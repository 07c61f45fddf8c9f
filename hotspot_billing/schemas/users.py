from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserStatusResponse(BaseModel):
    """Access status of a phone number."""

    phone: str
    active: bool
    active_until: Optional[datetime] = None
