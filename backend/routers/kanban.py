# routers/kanban.py — Kanban boards, ordered columns/cards and card dependencies
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db_session
from kanban_store import KanbanStore
from models import Board, BoardColumn, Card, CardPriority

router = APIRouter(prefix="/api/v1/kanban", tags=["Kanban Board"])


# ============================================================
# SCHEMAS
# ============================================================

# --- Board ---
class BoardCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    project_id: Optional[int] = None
    created_by: Optional[int] = None


class BoardUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None


class ColumnOut(BaseModel):
    id: int
    board_id: int
    name: str
    order_index: int
    created_at: Optional[str] = None


class BoardOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    project_id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: Optional[str] = None


class BoardDetailOut(BoardOut):
    columns: List[ColumnOut] = []


# --- Column ---
class ColumnCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class ColumnUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    order_index: Optional[int] = Field(None, ge=0)


# --- Card ---
class CardCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    assigned_to: Optional[int] = None
    due_date: Optional[datetime] = None
    priority: CardPriority = CardPriority.MEDIUM


class CardUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    assigned_to: Optional[int] = None
    due_date: Optional[datetime] = None
    priority: Optional[CardPriority] = None
    column_id: Optional[int] = None
    order_index: Optional[int] = Field(None, ge=0)


class CardMove(BaseModel):
    column_id: int
    order_index: Optional[int] = Field(None, ge=0)


class CardOut(BaseModel):
    id: int
    column_id: int
    title: str
    description: Optional[str] = None
    assigned_to: Optional[int] = None
    due_date: Optional[str] = None
    priority: str
    order_index: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# --- Dependency ---
class DependencyCreate(BaseModel):
    depends_on_card_id: int


class DependencyOut(BaseModel):
    id: int
    card_id: int
    depends_on_card_id: int
    dependent_card_title: Optional[str] = None
    dependency_card_title: Optional[str] = None
    created_at: Optional[str] = None


class DeleteOut(BaseModel):
    status: str = "deleted"
    id: int
    removed: dict = {}


# ============================================================
# HELPERS
# ============================================================

def get_store(db: AsyncSession = Depends(get_db_session)) -> KanbanStore:
    return KanbanStore(db)


def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


def _board_out(board: Board) -> BoardOut:
    return BoardOut(
        id=board.id,
        name=board.name,
        description=board.description,
        project_id=board.project_id,
        created_by=board.created_by,
        created_at=_ts(board.created_at),
    )


def _column_out(column: BoardColumn) -> ColumnOut:
    return ColumnOut(
        id=column.id,
        board_id=column.board_id,
        name=column.name,
        order_index=column.order_index,
        created_at=_ts(column.created_at),
    )


def _card_out(card: Card) -> CardOut:
    return CardOut(
        id=card.id,
        column_id=card.column_id,
        title=card.title,
        description=card.description,
        assigned_to=card.assigned_to,
        due_date=_ts(card.due_date),
        priority=card.priority.value if isinstance(card.priority, CardPriority) else card.priority,
        order_index=card.order_index,
        created_at=_ts(card.created_at),
        updated_at=_ts(card.updated_at),
    )


def _dependency_out(row: dict) -> DependencyOut:
    return DependencyOut(**{**row, "created_at": _ts(row.get("created_at"))})


# ============================================================
# BOARD ENDPOINTS
# ============================================================

@router.get("/boards", response_model=List[BoardOut])
async def list_boards(
    project_id: Optional[int] = Query(None, description="Only boards of this project"),
    store: KanbanStore = Depends(get_store),
):
    """List boards, newest first"""
    return [_board_out(b) for b in await store.list_boards(project_id)]


@router.post("/boards", response_model=BoardOut, status_code=201)
async def create_board(data: BoardCreate, store: KanbanStore = Depends(get_store)):
    board = await store.create_board(
        name=data.name,
        description=data.description,
        project_id=data.project_id,
        created_by=data.created_by,
    )
    return _board_out(board)


@router.get("/boards/{board_id}", response_model=BoardDetailOut)
async def get_board(board_id: int, store: KanbanStore = Depends(get_store)):
    """Board with its ordered columns"""
    board = await store.get_board(board_id)
    columns = await store.list_columns(board_id)
    return BoardDetailOut(
        **_board_out(board).model_dump(),
        columns=[_column_out(c) for c in columns],
    )


@router.patch("/boards/{board_id}", response_model=BoardOut)
async def update_board(board_id: int, data: BoardUpdate, store: KanbanStore = Depends(get_store)):
    board = await store.update_board(board_id, data.model_dump(exclude_unset=True))
    return _board_out(board)


@router.delete("/boards/{board_id}", response_model=DeleteOut)
async def delete_board(board_id: int, store: KanbanStore = Depends(get_store)):
    """Delete a board with all its columns, cards and their dependencies"""
    removed = await store.delete_board(board_id)
    return DeleteOut(id=board_id, removed=removed)


# ============================================================
# COLUMN ENDPOINTS
# ============================================================

@router.get("/boards/{board_id}/columns", response_model=List[ColumnOut])
async def list_columns(board_id: int, store: KanbanStore = Depends(get_store)):
    return [_column_out(c) for c in await store.list_columns(board_id)]


@router.post("/boards/{board_id}/columns", response_model=ColumnOut, status_code=201)
async def create_column(board_id: int, data: ColumnCreate, store: KanbanStore = Depends(get_store)):
    """Append a column to the board"""
    column = await store.create_column(board_id, data.name)
    return _column_out(column)


@router.patch("/columns/{column_id}", response_model=ColumnOut)
async def update_column(column_id: int, data: ColumnUpdate, store: KanbanStore = Depends(get_store)):
    """Rename or reposition a column"""
    column = await store.update_column(column_id, data.model_dump(exclude_unset=True))
    return _column_out(column)


@router.delete("/columns/{column_id}", response_model=DeleteOut)
async def delete_column(column_id: int, store: KanbanStore = Depends(get_store)):
    removed = await store.delete_column(column_id)
    return DeleteOut(id=column_id, removed=removed)


# ============================================================
# CARD ENDPOINTS
# ============================================================

@router.get("/columns/{column_id}/cards", response_model=List[CardOut])
async def list_cards(column_id: int, store: KanbanStore = Depends(get_store)):
    return [_card_out(c) for c in await store.list_cards(column_id)]


@router.post("/columns/{column_id}/cards", response_model=CardOut, status_code=201)
async def create_card(column_id: int, data: CardCreate, store: KanbanStore = Depends(get_store)):
    """Append a card to the column"""
    card = await store.create_card(
        column_id,
        title=data.title,
        description=data.description,
        assigned_to=data.assigned_to,
        due_date=data.due_date,
        priority=data.priority,
    )
    return _card_out(card)


@router.get("/cards/{card_id}", response_model=CardOut)
async def get_card(card_id: int, store: KanbanStore = Depends(get_store)):
    return _card_out(await store.get_card(card_id))


@router.patch("/cards/{card_id}", response_model=CardOut)
async def update_card(card_id: int, data: CardUpdate, store: KanbanStore = Depends(get_store)):
    card = await store.update_card(card_id, data.model_dump(exclude_unset=True))
    return _card_out(card)


@router.post("/cards/{card_id}/move", response_model=CardOut)
async def move_card(card_id: int, data: CardMove, store: KanbanStore = Depends(get_store)):
    """Move a card to a column, appending unless a slot is given"""
    card = await store.move_card(card_id, data.column_id, data.order_index)
    return _card_out(card)


@router.delete("/cards/{card_id}", response_model=DeleteOut)
async def delete_card(card_id: int, store: KanbanStore = Depends(get_store)):
    removed = await store.delete_card(card_id)
    return DeleteOut(id=card_id, removed=removed)


# ============================================================
# DEPENDENCY ENDPOINTS
# ============================================================

@router.get("/cards/{card_id}/dependencies", response_model=List[DependencyOut])
async def list_dependencies(card_id: int, store: KanbanStore = Depends(get_store)):
    """Cards this card depends on"""
    return [_dependency_out(row) for row in await store.graph.list_dependencies(card_id)]


@router.get("/cards/{card_id}/dependents", response_model=List[DependencyOut])
async def list_dependents(card_id: int, store: KanbanStore = Depends(get_store)):
    """Cards that depend on this card"""
    return [_dependency_out(row) for row in await store.graph.list_dependents(card_id)]


@router.post("/cards/{card_id}/dependencies", response_model=DependencyOut, status_code=201)
async def add_dependency(card_id: int, data: DependencyCreate, store: KanbanStore = Depends(get_store)):
    edge = await store.graph.add_dependency(card_id, data.depends_on_card_id)
    return DependencyOut(
        id=edge.id,
        card_id=edge.card_id,
        depends_on_card_id=edge.depends_on_card_id,
        created_at=_ts(edge.created_at),
    )


@router.delete("/dependencies/{dependency_id}", response_model=DeleteOut)
async def remove_dependency(dependency_id: int, store: KanbanStore = Depends(get_store)):
    await store.graph.remove_dependency(dependency_id)
    return DeleteOut(id=dependency_id)
