"""
Card dependency graph — directed edges "card depends on card"

The edge set is kept acyclic: an edge card_id -> depends_on_card_id is only
inserted when no path already leads from depends_on_card_id back to card_id.
Cascading deletes go through purge_for_cards() so that no edge ever outlives
either of its endpoints.
"""

import logging
from typing import Dict, Iterable, List, Any

from sqlalchemy import select, delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from errors import NotFound, InvalidOperation, CycleDetected, Conflict
from logging_system import audit_event
from models import Card, CardDependency

logger = logging.getLogger("kanban-core.dependencies")


class DependencyGraph:
    """Maintains the acyclic dependency edge set over cards"""

    def __init__(self, store):
        # The store validates card existence; it also owns the session
        self.store = store

    @property
    def db(self):
        return self.store.db

    async def add_dependency(self, card_id: int, depends_on_card_id: int) -> CardDependency:
        await self.store.get_card(card_id)
        await self.store.get_card(depends_on_card_id)

        if card_id == depends_on_card_id:
            raise InvalidOperation("A card cannot depend on itself (self-dependency)")

        if await self.would_create_cycle(card_id, depends_on_card_id):
            raise CycleDetected(
                f"Card {card_id} depending on card {depends_on_card_id} would create a cycle"
            )

        existing = await self.db.execute(
            select(CardDependency.id).where(
                CardDependency.card_id == card_id,
                CardDependency.depends_on_card_id == depends_on_card_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise Conflict(f"Duplicate dependency: card {card_id} already depends on card {depends_on_card_id}")

        edge = CardDependency(card_id=card_id, depends_on_card_id=depends_on_card_id)
        self.db.add(edge)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race against an identical insert
            await self.db.rollback()
            raise Conflict(f"Duplicate dependency: card {card_id} already depends on card {depends_on_card_id}")
        await self.db.refresh(edge)

        audit_event(
            "kanban.dependency.added", "kanban_card_dependency", edge.id,
            card_id=card_id, depends_on_card_id=depends_on_card_id,
        )
        return edge

    async def remove_dependency(self, edge_id: int) -> None:
        edge = await self.db.get(CardDependency, edge_id)
        if edge is None:
            raise NotFound("Dependency", edge_id)
        card_id, depends_on_card_id = edge.card_id, edge.depends_on_card_id

        await self.db.execute(delete(CardDependency).where(CardDependency.id == edge_id))
        await self.db.commit()
        audit_event(
            "kanban.dependency.removed", "kanban_card_dependency", edge_id,
            card_id=card_id, depends_on_card_id=depends_on_card_id,
        )

    async def list_dependencies(self, card_id: int) -> List[Dict[str, Any]]:
        """Edges where the card is the dependent side, joined with both titles"""
        return await self._list_edges(CardDependency.card_id == card_id)

    async def list_dependents(self, card_id: int) -> List[Dict[str, Any]]:
        """Edges where other cards depend on this one"""
        return await self._list_edges(CardDependency.depends_on_card_id == card_id)

    async def purge_for_cards(self, card_ids: Iterable[int]) -> int:
        """Delete every edge touching any of the given cards. Does not commit."""
        ids = list(set(card_ids))
        if not ids:
            return 0
        result = await self.db.execute(
            delete(CardDependency).where(
                or_(
                    CardDependency.card_id.in_(ids),
                    CardDependency.depends_on_card_id.in_(ids),
                )
            )
        )
        purged = result.rowcount or 0
        logger.debug("Purged %d dependency edges for %d cards", purged, len(ids))
        return purged

    async def would_create_cycle(self, card_id: int, depends_on_card_id: int) -> bool:
        """True if a path depends_on_card_id -> ... -> card_id already exists.

        Depth-first walk over existing out-edges with an explicit stack. The
        visited set keeps the walk finite even if cycles were written to the
        table out-of-band.
        """
        if card_id == depends_on_card_id:
            return True

        visited = set()
        stack = [depends_on_card_id]

        while stack:
            current = stack.pop()
            if current == card_id:
                return True
            if current in visited:
                continue
            visited.add(current)

            result = await self.db.execute(
                select(CardDependency.depends_on_card_id).where(CardDependency.card_id == current)
            )
            for next_id in result.scalars().all():
                if next_id not in visited:
                    stack.append(next_id)

        return False

    async def _list_edges(self, criterion) -> List[Dict[str, Any]]:
        dependent = aliased(Card)
        dependency = aliased(Card)
        stmt = (
            select(CardDependency, dependent.title, dependency.title)
            .join(dependent, CardDependency.card_id == dependent.id)
            .join(dependency, CardDependency.depends_on_card_id == dependency.id)
            .where(criterion)
            .order_by(CardDependency.id.asc())
        )
        result = await self.db.execute(stmt)
        return [
            {
                "id": edge.id,
                "card_id": edge.card_id,
                "depends_on_card_id": edge.depends_on_card_id,
                "dependent_card_title": dependent_title,
                "dependency_card_title": dependency_title,
                "created_at": edge.created_at,
            }
            for edge, dependent_title, dependency_title in result.all()
        ]
