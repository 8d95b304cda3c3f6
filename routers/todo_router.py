from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from core.auth import get_current_user
from core.database import get_db
from crud.todo_crud import (
    count_todos,
    create_todo,
    delete_todo,
    get_todo,
    list_overdue_todos,
    list_todos,
    toggle_todo,
    update_todo,
)
from models.todo import Priority
from schemas.todo_schema import TodoCreate, TodoResponse, TodoStats, TodoUpdate


router = APIRouter(prefix="/todos", tags=["Todos"])


@router.get("/", response_model=list[TodoResponse])
def list_all(
    completed: bool | None = None,
    priority: Priority | None = None,
    due_from: datetime | None = None,
    due_to: datetime | None = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return list_todos(
        db,
        user_id=current_user.id,
        completed=completed,
        priority=priority,
        due_from=due_from,
        due_to=due_to,
        skip=skip,
        limit=limit,
    )


@router.get("/overdue", response_model=list[TodoResponse])
def list_overdue(db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    """Open todos whose due date has passed, soonest first."""
    return list_overdue_todos(db, current_user.id, datetime.now(timezone.utc))


@router.get("/stats", response_model=TodoStats)
def stats(db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    completed = count_todos(db, current_user.id, completed=True)
    pending = count_todos(db, current_user.id, completed=False)
    return TodoStats(total=completed + pending, completed=completed, pending=pending)


@router.get("/{todo_id}", response_model=TodoResponse)
def read_one(todo_id: str, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    todo = get_todo(db, todo_id, current_user.id)
    if not todo:
        raise HTTPException(status_code=404, detail="Todo not found")
    return todo


@router.post("/", response_model=TodoResponse, status_code=201)
def create(payload: TodoCreate, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return create_todo(db, payload, user_id=current_user.id)


@router.patch("/{todo_id}", response_model=TodoResponse)
def update(todo_id: str, payload: TodoUpdate, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    todo = update_todo(db, todo_id, current_user.id, payload)
    if not todo:
        raise HTTPException(status_code=404, detail="Todo not found")
    return todo


@router.patch("/{todo_id}/toggle", response_model=TodoResponse)
def toggle(todo_id: str, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    todo = toggle_todo(db, todo_id, current_user.id)
    if not todo:
        raise HTTPException(status_code=404, detail="Todo not found")
    return todo


@router.delete("/{todo_id}", status_code=204)
def delete(todo_id: str, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    ok = delete_todo(db, todo_id, current_user.id)
    if not ok:
        raise HTTPException(status_code=404, detail="Todo not found")
    return None
