# ordering.py — Per-parent order_index allocation for columns and cards
from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from models import BoardColumn, Card


class OrderingAllocator:
    """Derives sibling order indices from existing rows.

    There is no shared counter: the next index is always max(order_index) + 1
    over the current siblings of a parent, so an empty parent starts at 0.
    Explicit reordering overwrites a single row and never renumbers the
    others, which means duplicates and gaps are possible. Readers must sort
    by (order_index, id).
    """

    def __init__(self, model, parent_attr: str):
        self.model = model
        self.parent_attr = parent_attr

    @property
    def parent_column(self):
        return getattr(self.model, self.parent_attr)

    async def next_index(self, db: AsyncSession, parent_id: int) -> int:
        stmt = select(func.coalesce(func.max(self.model.order_index), -1)).where(
            self.parent_column == parent_id
        )
        return (await db.execute(stmt)).scalar_one() + 1

    async def set_index(self, db: AsyncSession, entity_id: int, new_index: int) -> None:
        await db.execute(
            update(self.model)
            .where(self.model.id == entity_id)
            .values(order_index=new_index)
            .execution_options(synchronize_session="fetch")
        )

    def ordering(self):
        """ORDER BY clause giving a total order even with duplicate indices"""
        return (self.model.order_index.asc(), self.model.id.asc())


column_ordering = OrderingAllocator(BoardColumn, "board_id")
card_ordering = OrderingAllocator(Card, "column_id")
