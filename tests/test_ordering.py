"""Tests for column ordering: next ticket, reorder and move."""

import pytest

from mcptix.db import Database
from mcptix.models import Ticket
from mcptix.tickets import TicketQueries


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "mcptix.db")
    yield database
    database.close()


@pytest.fixture
def queries(db):
    return TicketQueries(db)


def _add(queries, ticket_id, status, order_value, updated="2024-01-01T00:00:00.000Z"):
    return queries.create_ticket(
        Ticket(
            id=ticket_id,
            title=ticket_id,
            status=status,
            order_value=order_value,
            created=updated,
            updated=updated,
        )
    )


class TestGetNextTicket:
    """Tests for get_next_ticket."""

    def test_highest_order_value_wins(self, queries):
        _add(queries, "low", "up-next", 100)
        _add(queries, "high", "up-next", 900)
        _add(queries, "other-column", "backlog", 5000)

        assert queries.get_next_ticket("up-next").id == "high"

    def test_ties_go_to_most_recently_updated(self, queries):
        _add(queries, "stale", "up-next", 1000, updated="2024-01-01T00:00:00.000Z")
        _add(queries, "fresh", "up-next", 1000, updated="2024-06-01T00:00:00.000Z")

        assert queries.get_next_ticket("up-next").id == "fresh"

    def test_default_column_is_up_next(self, queries):
        _add(queries, "queued", "up-next", 1)
        assert queries.get_next_ticket().id == "queued"

    def test_empty_column(self, queries):
        _add(queries, "elsewhere", "backlog", 1)
        assert queries.get_next_ticket("in-review") is None

    def test_includes_comments_and_complexity(self, queries):
        from mcptix.models import Comment

        _add(queries, "t1", "up-next", 1)
        queries.add_comment("t1", Comment(content="note"))

        ticket = queries.get_next_ticket("up-next")
        assert [c.content for c in ticket.comments] == ["note"]
        assert ticket.complexity_metadata.cie_score == 0


class TestReorderTicket:
    """Tests for reorder_ticket."""

    def test_reorder_changes_next_ticket(self, queries):
        _add(queries, "a", "up-next", 2000)
        _add(queries, "b", "up-next", 1000)

        assert queries.reorder_ticket("b", 3000) is True

        assert queries.get_ticket_by_id("b").order_value == 3000
        assert queries.get_next_ticket("up-next").id == "b"

    def test_reorder_bumps_updated(self, queries):
        _add(queries, "a", "up-next", 1)
        queries.reorder_ticket("a", 5)
        assert queries.get_ticket_by_id("a").updated > "2024-01-01T00:00:00.000Z"

    def test_reorder_missing(self, queries):
        assert queries.reorder_ticket("missing", 10) is False


class TestMoveTicket:
    """Tests for move_ticket."""

    def test_move_goes_below_destination_minimum(self, queries):
        _add(queries, "x", "in-progress", 500)
        _add(queries, "y", "in-progress", 200)
        _add(queries, "mover", "backlog", 9000)

        assert queries.move_ticket("mover", "in-progress") is True

        moved = queries.get_ticket_by_id("mover")
        assert moved.status == "in-progress"
        assert moved.order_value == -800
        assert queries.get_next_ticket("in-progress").id == "x"

    def test_move_into_empty_column(self, queries):
        _add(queries, "mover", "backlog", 42)

        assert queries.move_ticket("mover", "completed") is True
        assert queries.get_ticket_by_id("mover").order_value == 1000

    def test_move_with_explicit_order(self, queries):
        _add(queries, "x", "in-review", 500)
        _add(queries, "mover", "backlog", 1)

        assert queries.move_ticket("mover", "in-review", 750) is True

        moved = queries.get_ticket_by_id("mover")
        assert moved.status == "in-review"
        assert moved.order_value == 750
        assert queries.get_next_ticket("in-review").id == "mover"

    def test_move_within_same_column(self, queries):
        _add(queries, "a", "backlog", 300)
        _add(queries, "b", "backlog", 100)

        queries.move_ticket("a", "backlog")

        # a counts toward the minimum of its own column
        assert queries.get_ticket_by_id("a").order_value == -900

    def test_move_missing(self, queries):
        assert queries.move_ticket("missing", "backlog") is False

    def test_update_status_does_not_touch_order(self, queries):
        _add(queries, "a", "backlog", 1234)
        ticket = queries.get_ticket_by_id("a")
        ticket.status = "completed"
        ticket.complexity_metadata = None
        queries.update_ticket(ticket)

        moved = queries.get_ticket_by_id("a")
        assert moved.status == "completed"
        assert moved.order_value == 1234
