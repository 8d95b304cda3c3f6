from datetime import datetime
from sqlalchemy import asc, desc, func
from sqlalchemy.orm import Session
from models.todo import Priority, Todo
from schemas.todo_schema import TodoCreate, TodoUpdate


def get_todo(db: Session, todo_id: str, user_id: str):
    return db.query(Todo).filter(Todo.id == todo_id, Todo.user_id == user_id).first()


def list_todos(
    db: Session,
    user_id: str,
    completed: bool | None = None,
    priority: Priority | None = None,
    due_from: datetime | None = None,
    due_to: datetime | None = None,
    skip: int = 0,
    limit: int = 100,
):
    """Newest first; with a due-date bound, soonest due first. Bounds are inclusive."""
    q = db.query(Todo).filter(Todo.user_id == user_id)
    if completed is not None:
        q = q.filter(Todo.completed.is_(completed))
    if priority is not None:
        q = q.filter(Todo.priority == priority)
    if due_from is not None:
        q = q.filter(Todo.due_date >= due_from)
    if due_to is not None:
        q = q.filter(Todo.due_date <= due_to)
    ranged = due_from is not None or due_to is not None
    order = asc(Todo.due_date) if ranged else desc(Todo.created_at)
    return q.order_by(order).offset(skip).limit(limit).all()


def list_overdue_todos(db: Session, user_id: str, now: datetime):
    return (
        db.query(Todo)
        .filter(Todo.user_id == user_id, Todo.due_date <= now, Todo.completed.is_(False))
        .order_by(asc(Todo.due_date))
        .all()
    )


def count_todos(db: Session, user_id: str, completed: bool | None = None) -> int:
    q = db.query(func.count(Todo.id)).filter(Todo.user_id == user_id)
    if completed is not None:
        q = q.filter(Todo.completed.is_(completed))
    return q.scalar()


def create_todo(db: Session, payload: TodoCreate, user_id: str):
    todo = Todo(user_id=user_id, completed=False, **payload.model_dump())
    db.add(todo)
    db.commit()
    db.refresh(todo)
    return todo


def update_todo(db: Session, todo_id: str, user_id: str, payload: TodoUpdate):
    todo = get_todo(db, todo_id, user_id)
    if not todo:
        return None
    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(todo, k, v)
    db.commit()
    db.refresh(todo)
    return todo


def toggle_todo(db: Session, todo_id: str, user_id: str):
    todo = get_todo(db, todo_id, user_id)
    if not todo:
        return None
    todo.completed = not todo.completed
    db.commit()
    db.refresh(todo)
    return todo


def delete_todo(db: Session, todo_id: str, user_id: str) -> bool:
    todo = get_todo(db, todo_id, user_id)
    if not todo:
        return False
    db.delete(todo)
    db.commit()
    return True


def find_todos_due_between(db: Session, start: datetime, end: datetime):
    """Not-completed todos with start <= due_date < end, across all owners."""
    return (
        db.query(Todo)
        .filter(
            Todo.due_date >= start,
            Todo.due_date < end,
            Todo.completed.is_(False),
        )
        .order_by(asc(Todo.due_date))
        .all()
    )
