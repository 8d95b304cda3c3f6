from datetime import datetime
from pydantic import BaseModel, Field
from models.todo import Priority


class TodoBase(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    priority: Priority = Priority.MEDIUM
    due_date: datetime | None = None


class TodoCreate(TodoBase):
    """Client payload for creating a todo. Owner is inferred from auth."""
    pass


class TodoUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    priority: Priority | None = None
    completed: bool | None = None
    due_date: datetime | None = None


class TodoResponse(TodoBase):
    id: str
    user_id: str
    completed: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class TodoStats(BaseModel):
    total: int
    completed: int
    pending: int
