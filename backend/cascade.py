# cascade.py — Top-down deletion of board/column/card subtrees
import logging
from typing import Dict, List

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from models import BoardColumn, Card

logger = logging.getLogger("kanban-core.cascade")


class CascadeCoordinator:
    """Removes everything below a board, column or card.

    Statements run edges first, then cards, then columns, so an interrupted
    cascade never leaves an edge pointing at a missing card. The parent row
    itself is removed (and the transaction committed) by the caller. Each
    step only acts on children it can still find, so repeating a cascade is
    a no-op.
    """

    def __init__(self, db: AsyncSession, graph):
        self.db = db
        self.graph = graph

    async def on_delete_board(self, board_id: int) -> Dict[str, int]:
        column_ids = await self._ids(select(BoardColumn.id).where(BoardColumn.board_id == board_id))
        card_ids: List[int] = []
        if column_ids:
            card_ids = await self._ids(select(Card.id).where(Card.column_id.in_(column_ids)))

        summary = await self._remove_cards(card_ids)
        if column_ids:
            await self.db.execute(delete(BoardColumn).where(BoardColumn.id.in_(column_ids)))
        summary["columns"] = len(column_ids)

        logger.debug("Cascade for board %s: %s", board_id, summary)
        return summary

    async def on_delete_column(self, column_id: int) -> Dict[str, int]:
        card_ids = await self._ids(select(Card.id).where(Card.column_id == column_id))
        summary = await self._remove_cards(card_ids)
        logger.debug("Cascade for column %s: %s", column_id, summary)
        return summary

    async def on_delete_card(self, card_id: int) -> Dict[str, int]:
        purged = await self.graph.purge_for_cards([card_id])
        return {"dependencies": purged}

    async def _remove_cards(self, card_ids: List[int]) -> Dict[str, int]:
        purged = await self.graph.purge_for_cards(card_ids)
        if card_ids:
            await self.db.execute(delete(Card).where(Card.id.in_(card_ids)))
        return {"dependencies": purged, "cards": len(card_ids)}

    async def _ids(self, stmt) -> List[int]:
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
