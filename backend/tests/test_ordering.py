# tests/test_ordering.py — order_index allocation and reorder tolerance
import pytest

from ordering import column_ordering, card_ordering


@pytest.mark.asyncio
async def test_next_index_starts_at_zero(store, db_session):
    board = await store.create_board("Empty")
    assert await column_ordering.next_index(db_session, board.id) == 0


@pytest.mark.asyncio
async def test_columns_get_consecutive_indices(store, sprint_board):
    board, todo, done = sprint_board
    review = await store.create_column(board.id, "Review")

    assert (todo.order_index, done.order_index, review.order_index) == (0, 1, 2)


@pytest.mark.asyncio
async def test_indices_are_per_parent(store, sprint_board):
    board, todo, done = sprint_board
    other = await store.create_board("Other")
    first = await store.create_column(other.id, "Backlog")
    assert first.order_index == 0

    a = await store.create_card(todo.id, "A")
    b = await store.create_card(done.id, "B")
    assert a.order_index == 0
    assert b.order_index == 0


@pytest.mark.asyncio
async def test_new_sibling_follows_max_after_gap(store, db_session, sprint_board):
    _, todo, _ = sprint_board
    card = await store.create_card(todo.id, "A")
    await card_ordering.set_index(db_session, card.id, 10)
    await db_session.commit()

    nxt = await store.create_card(todo.id, "B")
    assert nxt.order_index == 11


@pytest.mark.asyncio
async def test_duplicate_index_is_tolerated_and_ties_break_by_id(store, db_session, chain_cards):
    c1, c2, c3 = chain_cards
    await card_ordering.set_index(db_session, c3.id, 0)
    await db_session.commit()

    cards = await store.list_cards(c1.column_id)
    assert [c.id for c in cards] == [c1.id, c3.id, c2.id]
    assert [c.order_index for c in cards] == [0, 0, 1]


@pytest.mark.asyncio
async def test_column_reorder_through_update(store, sprint_board):
    board, todo, done = sprint_board
    await store.update_column(todo.id, {"order_index": 5})

    columns = await store.list_columns(board.id)
    assert [c.name for c in columns] == ["Done", "To Do"]
    assert columns[1].order_index == 5
