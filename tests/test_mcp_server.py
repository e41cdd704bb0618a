"""Tests for MCP server tools and resources."""

import asyncio
import json

import pytest
import yaml

from mcptix import mcp_server
from mcptix.config import create_config
from mcptix.mcp_server import (
    add_comment,
    all_tickets_resource,
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
    ticket_by_id_resource,
    tickets_by_status_resource,
    update_ticket,
)
from mcptix.errors import TicketNotFoundError, ValidationError


@pytest.fixture
def project(tmp_path, monkeypatch):
    """A directory with .mcptix/config.json; yields its path as a string."""
    monkeypatch.delenv("MCPTIX_DB_PATH", raising=False)
    monkeypatch.delenv("MCPTIX_LOG_LEVEL", raising=False)
    create_config(tmp_path)
    yield str(tmp_path)
    for db in mcp_server._databases.values():
        db.close()
    mcp_server._databases.clear()


def _create(project, **kwargs):
    response = create_ticket(path=project, **kwargs)
    assert response["format"] == "json"
    return response["content"]["ticket"]


class TestTicketTools:
    """Tests for CRUD tools."""

    def test_create_and_get(self, project):
        created = _create(project, title="Write docs", priority="low")

        response = get_ticket(created["id"], path=project)

        assert response["content"]["ticket"]["title"] == "Write docs"
        assert response["content"]["ticket"]["priority"] == "low"

    def test_database_created_in_project(self, project, tmp_path):
        _create(project, title="Anything")
        assert (tmp_path / ".mcptix" / "data" / "mcptix.db").exists()

    def test_database_is_reused(self, project):
        _create(project, title="One")
        _create(project, title="Two")
        assert len(mcp_server._databases) == 1

    def test_get_missing(self, project):
        response = get_ticket("missing", path=project)
        assert response["content"]["error"] == "not_found"

    def test_list_and_search(self, project):
        _create(project, title="Alpha bug")
        _create(project, title="Beta feature", status="up-next")

        listed = list_tickets(status="up-next", path=project)["content"]
        found = search_tickets("bug", path=project)["content"]

        assert [t["title"] for t in listed["tickets"]] == ["Beta feature"]
        assert [t["title"] for t in found["tickets"]] == ["Alpha bug"]
        assert found["pagination"]["total_count"] == 1

    def test_update_and_delete(self, project):
        created = _create(project, title="Draft")

        updated = update_ticket(created["id"], title="Final", path=project)["content"]
        deleted = delete_ticket(created["id"], path=project)["content"]

        assert updated["ticket"]["title"] == "Final"
        assert deleted["success"] is True
        assert get_ticket(created["id"], path=project)["content"]["error"] == "not_found"

    def test_add_comment_defaults_to_agent(self, project):
        created = _create(project, title="Discuss")

        add_comment(created["id"], "Started work", path=project)

        comments = get_ticket(created["id"], path=project)["content"]["ticket"]["comments"]
        assert comments[0]["author"] == "agent"

    def test_edit_field(self, project):
        created = _create(project, title="Fix the thing")

        result = edit_field(created["id"], "title", "thing", "parser", path=project)["content"]

        assert result["changed"] is True
        assert get_ticket(created["id"], path=project)["content"]["ticket"]["title"] == "Fix the parser"

    def test_validation_error_payload(self, project):
        response = create_ticket(title="", path=project)
        assert response["content"]["error"] == "validation_error"


class TestBoardTools:
    """Tests for ordering, stats and export tools."""

    def test_next_move_reorder(self, project):
        first = _create(project, title="First", status="up-next")
        second = _create(project, title="Second")

        move_ticket(second["id"], "up-next", path=project)
        assert get_next_ticket(path=project)["content"]["ticket"]["id"] == first["id"]

        reorder_ticket(second["id"], 5000, path=project)
        assert get_next_ticket(path=project)["content"]["ticket"]["id"] == second["id"]

    def test_stats(self, project):
        _create(project, title="a")
        _create(project, title="b", priority="high")

        stats = get_stats(group_by="priority", path=project)["content"]

        assert stats["stats"] == {"medium": 1, "high": 1}

    def test_export(self, project):
        _create(project, title="Shipped", status="completed")

        columns = export_tickets(path=project)["content"]["columns"]

        assert columns[4]["tickets"][0]["title"] == "Shipped"


class TestFormats:
    """Tests for output formats."""

    def test_yaml(self, project):
        created = _create(project, title="Yaml me")

        response = get_ticket(created["id"], path=project, format="yaml")

        assert response["format"] == "yaml"
        assert yaml.safe_load(response["content"])["ticket"]["title"] == "Yaml me"

    def test_text(self, project):
        created = _create(project, title="Plain")

        response = get_ticket(created["id"], path=project, format="text")

        assert response["format"] == "text"
        assert response["content"].startswith(f"Plain [{created['id']}]")

    def test_text_list(self, project):
        _create(project, title="Listed")

        response = list_tickets(path=project, format="text")

        assert "Listed" in response["content"]
        assert "(1 of 1)" in response["content"]


class TestResources:
    """Tests for tickets:// resources."""

    @pytest.fixture
    def cwd_project(self, project, monkeypatch):
        monkeypatch.chdir(project)
        return project

    def test_resources_registered(self):
        resources = asyncio.run(mcp_server.mcp.list_resources())
        templates = asyncio.run(mcp_server.mcp.list_resource_templates())

        assert any(str(r.uri).startswith("tickets://all") for r in resources)
        assert {t.uriTemplate for t in templates} == {
            "tickets://status/{status}",
            "tickets://id/{id}",
        }

    def test_all_tickets(self, cwd_project):
        _create(cwd_project, title="One")
        _create(cwd_project, title="Two", status="completed")

        data = json.loads(all_tickets_resource())

        assert data["metadata"]["resource"] == "tickets://all"
        assert data["metadata"]["total"] == 2
        assert data["metadata"]["limit"] == 100
        assert {t["title"] for t in data["tickets"]} == {"One", "Two"}
        assert "comments" not in data["tickets"][0]

    def test_tickets_by_status(self, cwd_project):
        _create(cwd_project, title="Queued", status="up-next")
        _create(cwd_project, title="Other")

        data = json.loads(tickets_by_status_resource("up-next"))

        assert data["metadata"]["status"] == "up-next"
        assert [t["title"] for t in data["tickets"]] == ["Queued"]

    def test_unknown_status(self, cwd_project):
        with pytest.raises(ValidationError):
            tickets_by_status_resource("doing")

    def test_ticket_by_id(self, cwd_project):
        created = _create(cwd_project, title="Detailed")
        add_comment(created["id"], "note", path=cwd_project)

        data = json.loads(ticket_by_id_resource(created["id"]))

        assert data["metadata"] == {"resource": f"tickets://id/{created['id']}", "id": created["id"]}
        assert data["ticket"]["comments"][0]["content"] == "note"

    def test_missing_ticket(self, cwd_project):
        with pytest.raises(TicketNotFoundError):
            ticket_by_id_resource("missing")


class TestDatabaseErrors:
    """Tests for configuration and database failures."""

    def test_bad_config_reported(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MCPTIX_LOG_LEVEL", raising=False)
        config_dir = tmp_path / ".mcptix"
        config_dir.mkdir()
        (config_dir / "config.json").write_text('{"log_level": "shout"}')

        response = list_tickets(path=str(tmp_path))

        assert response["content"]["error"] == "database_error"
        assert "shout" in response["content"]["message"]
