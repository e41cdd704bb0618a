"""Tests for the shared ticket service layer."""

import pytest

from mcptix.db import Database
from mcptix.services import (
    add_comment,
    create_ticket,
    delete_ticket,
    edit_field,
    export_tickets,
    get_next_ticket,
    get_stats,
    get_ticket,
    list_tickets,
    move_ticket,
    reorder_ticket,
    search_tickets,
    update_ticket,
)
from mcptix.tickets import TicketQueries


@pytest.fixture
def queries(tmp_path):
    db = Database(tmp_path / "mcptix.db")
    yield TicketQueries(db)
    db.close()


@pytest.fixture
def ticket(queries):
    result = create_ticket(
        queries,
        title="Fix login error",
        description="The Error occurs on login. error handling is missing.",
        agent_context="See auth.py",
    )
    return result["ticket"]


class TestCreateTicket:
    """Tests for create_ticket."""

    def test_create(self, queries):
        result = create_ticket(
            queries,
            title="New",
            priority="high",
            complexity_metadata={"files_touched": 10},
            comments=[{"content": "first", "author": "agent"}],
        )

        assert result["success"] is True
        ticket = result["ticket"]
        assert ticket["priority"] == "high"
        assert ticket["status"] == "backlog"
        assert ticket["complexity_metadata"]["cie_score"] == 5.0
        assert ticket["comments"][0]["author"] == "agent"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"title": ""},
            {"title": "   "},
            {"title": "x", "priority": "urgent"},
            {"title": "x", "status": "doing"},
            {"title": "x", "comments": [{"content": ""}]},
            {"title": "x", "comments": [{"content": "hi", "author": "bot"}]},
        ],
    )
    def test_validation(self, queries, kwargs):
        result = create_ticket(queries, **kwargs)
        assert result["error"] == "validation_error"
        assert queries.count_tickets() == 0


class TestGetAndList:
    """Tests for get_ticket, list_tickets and search_tickets."""

    def test_get(self, queries, ticket):
        assert get_ticket(queries, ticket["id"])["ticket"]["title"] == "Fix login error"

    def test_get_missing(self, queries):
        result = get_ticket(queries, "missing")
        assert result == {"error": "not_found", "message": "Ticket not found: missing"}

    def test_list_with_pagination(self, queries):
        for i in range(3):
            create_ticket(queries, title=f"T{i}")

        result = list_tickets(queries, limit=2)

        assert len(result["tickets"]) == 2
        assert "comments" not in result["tickets"][0]
        assert result["pagination"] == {
            "total_count": 3,
            "limit": 2,
            "offset": 0,
            "has_more": True,
            "next_offset": 2,
        }

    def test_list_bad_sort(self, queries):
        assert list_tickets(queries, sort="bogus")["error"] == "validation_error"

    def test_list_bad_status(self, queries):
        assert list_tickets(queries, status="doing")["error"] == "validation_error"

    def test_search(self, queries, ticket):
        create_ticket(queries, title="Unrelated")
        result = search_tickets(queries, "login")
        assert [t["id"] for t in result["tickets"]] == [ticket["id"]]

    def test_search_requires_query(self, queries):
        assert search_tickets(queries, "")["error"] == "validation_error"


class TestUpdateAndDelete:
    """Tests for update_ticket and delete_ticket."""

    def test_partial_update(self, queries, ticket):
        result = update_ticket(queries, ticket["id"], status="in-progress")

        updated = result["ticket"]
        assert updated["status"] == "in-progress"
        assert updated["title"] == "Fix login error"
        assert updated["agent_context"] == "See auth.py"

    def test_update_merges_complexity(self, queries):
        created = create_ticket(
            queries, title="Scored", complexity_metadata={"files_touched": 10}
        )["ticket"]

        result = update_ticket(
            queries, created["id"], complexity_metadata={"subjectivity_rating": 0.5}
        )

        complexity = result["ticket"]["complexity_metadata"]
        assert complexity["files_touched"] == 10
        assert complexity["subjectivity_rating"] == 0.5
        assert complexity["cie_score"] == 17.5

    def test_update_without_metrics_keeps_score(self, queries):
        created = create_ticket(
            queries, title="Trusted", complexity_metadata={"cie_score": 42}
        )["ticket"]

        result = update_ticket(queries, created["id"], title="Renamed")

        assert result["ticket"]["complexity_metadata"]["cie_score"] == 42

    def test_update_missing(self, queries):
        assert update_ticket(queries, "missing", title="x")["error"] == "not_found"

    def test_update_invalid_priority(self, queries, ticket):
        assert update_ticket(queries, ticket["id"], priority="p0")["error"] == "validation_error"

    def test_delete(self, queries, ticket):
        assert delete_ticket(queries, ticket["id"]) == {"success": True, "id": ticket["id"]}
        assert delete_ticket(queries, ticket["id"])["error"] == "not_found"


class TestAddComment:
    """Tests for add_comment."""

    def test_add(self, queries, ticket):
        result = add_comment(queries, ticket["id"], "On it", author="agent")

        assert result["success"] is True
        comments = get_ticket(queries, ticket["id"])["ticket"]["comments"]
        assert comments[0]["id"] == result["comment_id"]
        assert comments[0]["content"] == "On it"

    def test_missing_ticket(self, queries):
        assert add_comment(queries, "missing", "hello")["error"] == "not_found"

    def test_empty_content(self, queries, ticket):
        assert add_comment(queries, ticket["id"], "")["error"] == "validation_error"

    def test_invalid_author(self, queries, ticket):
        assert add_comment(queries, ticket["id"], "hi", author="bot")["error"] == "validation_error"


class TestEditField:
    """Tests for edit_field."""

    def test_literal_replace(self, queries, ticket):
        result = edit_field(queries, ticket["id"], "title", "login", "signup")

        assert result["changed"] is True
        assert result["replacement_count"] == 1
        assert result["message"] == "Field updated successfully"
        assert get_ticket(queries, ticket["id"])["ticket"]["title"] == "Fix signup error"

    def test_literal_search_escapes_regex(self, queries):
        created = create_ticket(queries, title="Cost is $5.00 (approx)")["ticket"]

        result = edit_field(queries, created["id"], "title", "$5.00 (approx)", "$6.00")

        assert result["replacement_count"] == 1
        assert get_ticket(queries, created["id"])["ticket"]["title"] == "Cost is $6.00"

    def test_literal_replacement_is_not_a_template(self, queries, ticket):
        edit_field(queries, ticket["id"], "agent_context", "auth.py", r"\1 auth\new.py")
        assert get_ticket(queries, ticket["id"])["ticket"]["agent_context"] == r"See \1 auth\new.py"

    def test_case_insensitive(self, queries, ticket):
        result = edit_field(
            queries, ticket["id"], "description", "error", "exception", case_sensitive=False
        )

        assert result["replacement_count"] == 2
        description = get_ticket(queries, ticket["id"])["ticket"]["description"]
        assert description == "The exception occurs on login. exception handling is missing."

    def test_case_sensitive_by_default(self, queries, ticket):
        result = edit_field(queries, ticket["id"], "description", "error", "exception")

        assert result["replacement_count"] == 1
        description = get_ticket(queries, ticket["id"])["ticket"]["description"]
        assert description == "The Error occurs on login. exception handling is missing."

    def test_regex_with_groups(self, queries):
        created = create_ticket(
            queries,
            title="Contacts",
            description="john@example.com and jane@example.com",
        )["ticket"]

        result = edit_field(
            queries,
            created["id"],
            "description",
            r"(\w+)@example\.com",
            r"\1@company.org",
            use_regex=True,
        )

        assert result["replacement_count"] == 2
        description = get_ticket(queries, created["id"])["ticket"]["description"]
        assert description == "john@company.org and jane@company.org"

    def test_no_match_makes_no_write(self, queries, ticket):
        before = get_ticket(queries, ticket["id"])["ticket"]["updated"]

        result = edit_field(queries, ticket["id"], "title", "nonexistent", "x")

        assert result["success"] is True
        assert result["changed"] is False
        assert result["message"] == "No changes made - search text not found"
        assert get_ticket(queries, ticket["id"])["ticket"]["updated"] == before

    def test_invalid_field(self, queries, ticket):
        assert edit_field(queries, ticket["id"], "status", "a", "b")["error"] == "validation_error"

    def test_invalid_regex(self, queries, ticket):
        result = edit_field(queries, ticket["id"], "title", "(unclosed", "x", use_regex=True)
        assert result["error"] == "validation_error"

    def test_missing_ticket(self, queries):
        assert edit_field(queries, "missing", "title", "a", "b")["error"] == "not_found"

    def test_empty_field_value(self, queries):
        created = create_ticket(queries, title="No context")["ticket"]
        result = edit_field(queries, created["id"], "agent_context", "x", "y")
        assert result["changed"] is False


class TestStats:
    """Tests for get_stats."""

    def test_group_by_status(self, queries):
        create_ticket(queries, title="a")
        create_ticket(queries, title="b")
        create_ticket(queries, title="c", status="completed", priority="high")

        result = get_stats(queries)

        assert result["group_by"] == "status"
        assert result["stats"] == {"backlog": 2, "completed": 1}
        assert result["total"] == 3

    def test_group_by_priority(self, queries):
        create_ticket(queries, title="a", priority="low")
        create_ticket(queries, title="b", priority="high")

        assert get_stats(queries, "priority")["stats"] == {"low": 1, "high": 1}

    def test_invalid_group(self, queries):
        assert get_stats(queries, "title")["error"] == "validation_error"


class TestOrdering:
    """Tests for next/reorder/move services."""

    def test_next_ticket(self, queries):
        created = create_ticket(queries, title="Queued", status="up-next")["ticket"]
        assert get_next_ticket(queries)["ticket"]["id"] == created["id"]

    def test_next_ticket_empty_column(self, queries):
        result = get_next_ticket(queries, "in-review")
        assert result["error"] == "not_found"
        assert "in-review" in result["message"]

    def test_reorder(self, queries, ticket):
        result = reorder_ticket(queries, ticket["id"], 2500)
        assert result == {"success": True, "id": ticket["id"], "order_value": 2500}

    def test_reorder_missing(self, queries):
        assert reorder_ticket(queries, "missing", 1)["error"] == "not_found"

    def test_move(self, queries, ticket):
        result = move_ticket(queries, ticket["id"], "in-progress")
        assert result["status"] == "in-progress"
        assert result["order_value"] == 1000

    def test_move_invalid_status(self, queries, ticket):
        assert move_ticket(queries, ticket["id"], "doing")["error"] == "validation_error"

    def test_move_missing(self, queries):
        assert move_ticket(queries, "missing", "backlog")["error"] == "not_found"


class TestExport:
    def test_export(self, queries, ticket):
        data = export_tickets(queries)
        assert data["columns"][0]["tickets"][0]["id"] == ticket["id"]
