from datetime import datetime
from pydantic import BaseModel


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    enabled: bool
    created_at: datetime | None = None

    model_config = {
        "from_attributes": True,
    }
