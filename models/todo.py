import enum
import uuid
from sqlalchemy import Column, String, Boolean, Enum, ForeignKey, Index
from models.base import Base, TimestampMixin, UTCDateTime


class Priority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Todo(Base, TimestampMixin):
    __tablename__ = "todo"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    priority = Column(Enum(Priority, name="todo_priority"), default=Priority.MEDIUM, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    due_date = Column(UTCDateTime, nullable=True)

Index("idx_todo_user_id_created_at", Todo.user_id, Todo.created_at.desc())
Index("idx_todo_due_date_completed", Todo.due_date, Todo.completed)
