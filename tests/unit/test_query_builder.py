"""Unit tests for UpdateBuilder."""

import pytest

from tasktracker.core.query_builder import UpdateBuilder


@pytest.mark.unit
class TestUpdateBuilder:
    """Rendering of partial UPDATE statements."""

    def test_renders_bound_assignments_then_expressions(self):
        builder = UpdateBuilder("tasks")
        builder.set("title", "New").set("status", "done").touch("updated_at", "CURRENT_TIMESTAMP")

        query, params = builder.build(where_column="id", where_value=7)

        assert query == "UPDATE tasks SET title = ?, status = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?"
        assert params == ["New", "done", 7]

    def test_touch_before_set_still_renders_last(self):
        builder = UpdateBuilder("tasks").touch("updated_at", "CURRENT_TIMESTAMP").set("title", "X")

        query, _ = builder.build(where_column="id", where_value=1)

        assert query == "UPDATE tasks SET title = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?"
        assert builder.columns == ["title", "updated_at"]

    def test_timestamp_only_update(self):
        builder = UpdateBuilder("tasks").touch("updated_at", "CURRENT_TIMESTAMP")

        query, params = builder.build(where_column="id", where_value=3)

        assert query == "UPDATE tasks SET updated_at = CURRENT_TIMESTAMP WHERE id = ?"
        assert params == [3]

    def test_none_values_are_bound_not_skipped(self):
        builder = UpdateBuilder("tasks").set("due_date", None)

        query, params = builder.build(where_column="id", where_value=1)

        assert "due_date = ?" in query
        assert params == [None, 1]

    def test_values_never_reach_statement_text(self):
        payload = "x'; DROP TABLE tasks; --"
        query, params = UpdateBuilder("tasks").set("title", payload).build(where_column="id", where_value=1)

        assert payload not in query
        assert params[0] == payload

    def test_set_many_preserves_order(self):
        builder = UpdateBuilder("users").set_many({"username": "bob", "email": None})
        assert builder.columns == ["username", "email"]

    def test_empty_builder_refuses_to_build(self):
        with pytest.raises(ValueError, match="Empty update payload"):
            UpdateBuilder("tasks").build(where_column="id", where_value=1)

    def test_duplicate_column_rejected(self):
        builder = UpdateBuilder("tasks").set("title", "a")
        with pytest.raises(ValueError, match="already assigned"):
            builder.set("title", "b")
        with pytest.raises(ValueError, match="already assigned"):
            builder.touch("title", "NULL")

    @pytest.mark.parametrize("name", ["title; DROP TABLE tasks", "1abc", "ti-tle", ""])
    def test_invalid_identifiers_rejected(self, name: str):
        with pytest.raises(ValueError, match="Invalid SQL identifier"):
            UpdateBuilder("tasks").set(name, "x")

    def test_invalid_table_rejected(self):
        with pytest.raises(ValueError, match="Invalid SQL identifier"):
            UpdateBuilder("tasks t")
