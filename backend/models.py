# models.py — Database models for the Kanban core
# - Board 1—N Column 1—N Card hierarchy with per-parent order_index
# - Card dependency edges (directed, acyclic, no duplicates)
# - Integer primary keys so that (order_index, id) gives a creation-order tie-break

from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, Integer, Text,
    Enum as SQLEnum, ForeignKey, Index, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


# ============================================================
# ENUMS
# ============================================================

class CardPriority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ============================================================
# KANBAN BOARD
# ============================================================

class Board(Base):
    """Kanban board, optionally attached to a project"""
    __tablename__ = "kanban_boards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    project_id = Column(Integer, nullable=True, index=True)  # Owned by the project service
    created_by = Column(Integer, nullable=True)  # User id, not validated here
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    columns = relationship(
        "BoardColumn", back_populates="board", passive_deletes=True,
        order_by="BoardColumn.order_index",
    )


class BoardColumn(Base):
    """Ordered column within a board"""
    __tablename__ = "kanban_columns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    board_id = Column(Integer, ForeignKey("kanban_boards.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    order_index = Column(Integer, nullable=False, default=0)  # Duplicates tolerated after manual reorder
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    board = relationship("Board", back_populates="columns")
    cards = relationship(
        "Card", back_populates="column", passive_deletes=True,
        order_by="Card.order_index",
    )

    __table_args__ = (
        Index("idx_kcol_board_order", "board_id", "order_index"),
    )


class Card(Base):
    """Task card within a column"""
    __tablename__ = "kanban_cards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    column_id = Column(Integer, ForeignKey("kanban_columns.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    assigned_to = Column(Integer, nullable=True, index=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    priority = Column(
        SQLEnum(CardPriority, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=CardPriority.MEDIUM,
    )
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    column = relationship("BoardColumn", back_populates="cards")

    __table_args__ = (
        Index("idx_kcard_column_order", "column_id", "order_index"),
    )


class CardDependency(Base):
    """Directed edge: card_id depends on depends_on_card_id"""
    __tablename__ = "kanban_card_dependencies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    card_id = Column(Integer, ForeignKey("kanban_cards.id", ondelete="CASCADE"), nullable=False, index=True)
    depends_on_card_id = Column(Integer, ForeignKey("kanban_cards.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    card = relationship("Card", foreign_keys=[card_id])
    depends_on_card = relationship("Card", foreign_keys=[depends_on_card_id])

    __table_args__ = (
        UniqueConstraint("card_id", "depends_on_card_id", name="uq_card_dependency_pair"),
        CheckConstraint("card_id != depends_on_card_id", name="ck_no_self_dependency"),
    )
