"""
Kanban store — boards, ordered columns and ordered cards

Every mutation commits before returning. Creation takes its order_index from
the per-parent allocators; deletions run the cascade coordinator first and
then remove the row itself in the same transaction.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from cascade import CascadeCoordinator
from dependency_graph import DependencyGraph
from errors import NotFound
from logging_system import audit_event
from models import Board, BoardColumn, Card, CardPriority
from ordering import column_ordering, card_ordering

logger = logging.getLogger("kanban-core.store")

# Fields a patch may touch; order_index and column_id are handled separately
BOARD_FIELDS = ("name", "description")
COLUMN_FIELDS = ("name",)
CARD_FIELDS = ("title", "description", "assigned_to", "due_date", "priority")
# These cannot be cleared, so an explicit null in a patch is ignored
REQUIRED_FIELDS = {"name", "title", "priority"}


def _apply_patch(entity, patch: Dict[str, Any], fields) -> List[str]:
    # Values are converted first so a bad value leaves the entity untouched
    updates = {}
    for field_name in fields:
        if field_name not in patch:
            continue
        value = patch[field_name]
        if value is None and field_name in REQUIRED_FIELDS:
            continue
        if field_name == "priority":
            value = CardPriority(value)
        if getattr(entity, field_name) != value:
            updates[field_name] = value

    for field_name, value in updates.items():
        setattr(entity, field_name, value)
    return list(updates)


class KanbanStore:
    """CRUD over the Board -> Column -> Card hierarchy"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.graph = DependencyGraph(self)
        self.cascade = CascadeCoordinator(db, self.graph)

    # ============================================================
    # BOARDS
    # ============================================================

    async def create_board(
        self,
        name: str,
        description: Optional[str] = None,
        project_id: Optional[int] = None,
        created_by: Optional[int] = None,
    ) -> Board:
        board = Board(
            name=name,
            description=description,
            project_id=project_id,
            created_by=created_by,
        )
        self.db.add(board)
        await self.db.commit()
        await self.db.refresh(board)
        audit_event("kanban.board.created", "kanban_board", board.id, name=name, project_id=project_id)
        return board

    async def get_board(self, board_id: int) -> Board:
        board = await self.db.get(Board, board_id)
        if board is None:
            raise NotFound("Board", board_id)
        return board

    async def list_boards(self, project_id: Optional[int] = None) -> List[Board]:
        stmt = select(Board).order_by(Board.created_at.desc(), Board.id.desc())
        if project_id is not None:
            stmt = stmt.where(Board.project_id == project_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def update_board(self, board_id: int, patch: Dict[str, Any]) -> Board:
        board = await self.get_board(board_id)
        changed = _apply_patch(board, patch, BOARD_FIELDS)
        await self.db.commit()
        await self.db.refresh(board)
        audit_event("kanban.board.updated", "kanban_board", board_id, fields=changed)
        return board

    async def delete_board(self, board_id: int) -> Dict[str, int]:
        await self.get_board(board_id)
        summary = await self.cascade.on_delete_board(board_id)
        await self.db.execute(delete(Board).where(Board.id == board_id))
        await self.db.commit()
        audit_event("kanban.board.deleted", "kanban_board", board_id, **summary)
        return summary

    # ============================================================
    # COLUMNS
    # ============================================================

    async def get_column(self, column_id: int) -> BoardColumn:
        column = await self.db.get(BoardColumn, column_id)
        if column is None:
            raise NotFound("Column", column_id)
        return column

    async def create_column(self, board_id: int, name: str) -> BoardColumn:
        await self.get_board(board_id)
        order_index = await column_ordering.next_index(self.db, board_id)

        column = BoardColumn(board_id=board_id, name=name, order_index=order_index)
        self.db.add(column)
        await self.db.commit()
        await self.db.refresh(column)
        audit_event("kanban.column.created", "kanban_column", column.id, board_id=board_id)
        return column

    async def list_columns(self, board_id: int) -> List[BoardColumn]:
        await self.get_board(board_id)
        result = await self.db.execute(
            select(BoardColumn)
            .where(BoardColumn.board_id == board_id)
            .order_by(*column_ordering.ordering())
        )
        return list(result.scalars().all())

    async def update_column(self, column_id: int, patch: Dict[str, Any]) -> BoardColumn:
        column = await self.get_column(column_id)
        changed = _apply_patch(column, patch, COLUMN_FIELDS)
        if patch.get("order_index") is not None:
            await column_ordering.set_index(self.db, column_id, patch["order_index"])
            changed.append("order_index")
        await self.db.commit()
        await self.db.refresh(column)
        audit_event("kanban.column.updated", "kanban_column", column_id, fields=changed)
        return column

    async def delete_column(self, column_id: int) -> Dict[str, int]:
        await self.get_column(column_id)
        summary = await self.cascade.on_delete_column(column_id)
        await self.db.execute(delete(BoardColumn).where(BoardColumn.id == column_id))
        await self.db.commit()
        audit_event("kanban.column.deleted", "kanban_column", column_id, **summary)
        return summary

    # ============================================================
    # CARDS
    # ============================================================

    async def get_card(self, card_id: int) -> Card:
        card = await self.db.get(Card, card_id)
        if card is None:
            raise NotFound("Card", card_id)
        return card

    async def create_card(
        self,
        column_id: int,
        title: str,
        description: Optional[str] = None,
        assigned_to: Optional[int] = None,
        due_date: Optional[datetime] = None,
        priority: Optional[str] = None,
    ) -> Card:
        await self.get_column(column_id)
        order_index = await card_ordering.next_index(self.db, column_id)

        card = Card(
            column_id=column_id,
            title=title,
            description=description,
            assigned_to=assigned_to,
            due_date=due_date,
            priority=CardPriority(priority) if priority else CardPriority.MEDIUM,
            order_index=order_index,
        )
        self.db.add(card)
        await self.db.commit()
        await self.db.refresh(card)
        audit_event("kanban.card.created", "kanban_card", card.id, column_id=column_id)
        return card

    async def list_cards(self, column_id: int) -> List[Card]:
        await self.get_column(column_id)
        result = await self.db.execute(
            select(Card)
            .where(Card.column_id == column_id)
            .order_by(*card_ordering.ordering())
        )
        return list(result.scalars().all())

    async def update_card(self, card_id: int, patch: Dict[str, Any]) -> Card:
        card = await self.get_card(card_id)
        target_column_id = patch.get("column_id")
        if target_column_id is not None:
            # Target column must exist before the card is modified
            await self.get_column(target_column_id)

        changed = _apply_patch(card, patch, CARD_FIELDS)
        if target_column_id is not None and target_column_id != card.column_id:
            if patch.get("order_index") is None:
                # Moved without an explicit slot: append to the target column
                card.order_index = await card_ordering.next_index(self.db, target_column_id)
            card.column_id = target_column_id
            changed.append("column_id")

        if changed:
            await self.db.flush()
        if patch.get("order_index") is not None:
            await card_ordering.set_index(self.db, card_id, patch["order_index"])
            changed.append("order_index")

        await self.db.commit()
        await self.db.refresh(card)
        audit_event("kanban.card.updated", "kanban_card", card_id, fields=changed)
        return card

    async def move_card(self, card_id: int, column_id: int, order_index: Optional[int] = None) -> Card:
        return await self.update_card(card_id, {"column_id": column_id, "order_index": order_index})

    async def delete_card(self, card_id: int) -> Dict[str, int]:
        await self.get_card(card_id)
        summary = await self.cascade.on_delete_card(card_id)
        await self.db.execute(delete(Card).where(Card.id == card_id))
        await self.db.commit()
        audit_event("kanban.card.deleted", "kanban_card", card_id, **summary)
        return summary
