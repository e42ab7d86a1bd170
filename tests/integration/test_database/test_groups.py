"""Tests for item groups."""

import sqlite3

import pytest

from clipstash.database import ClipboardDB
from fixtures.database import temp_db
from fixtures.test_data import make_new_item


class TestGroups:
    """Test group management."""

    def test_create_and_list_groups(self, temp_db: ClipboardDB):
        temp_db.create_group("Work")
        temp_db.create_group("Code")

        groups = temp_db.get_groups()

        assert [g.name for g in groups] == ["Code", "Work"]
        assert all(g.item_count == 0 for g in groups)

    def test_duplicate_group_name(self, temp_db: ClipboardDB):
        temp_db.create_group("Work")

        with pytest.raises(sqlite3.IntegrityError):
            temp_db.create_group("Work")

    def test_add_item_to_group(self, temp_db: ClipboardDB):
        item_id = temp_db.add_item(make_new_item("snippet"))
        group_id = temp_db.create_group("Code")

        assert temp_db.add_item_to_group(item_id, group_id) is True
        assert temp_db.add_item_to_group(item_id, group_id) is False

        assert temp_db.get_groups()[0].item_count == 1
        assert [g.name for g in temp_db.get_groups_for_item(item_id)] == ["Code"]
        assert [i.id for i in temp_db.get_items_in_group(group_id)] == [item_id]

    def test_add_missing_item_to_group(self, temp_db: ClipboardDB):
        group_id = temp_db.create_group("Code")

        assert temp_db.add_item_to_group("missing", group_id) is False

    def test_remove_item_from_group(self, temp_db: ClipboardDB):
        item_id = temp_db.add_item(make_new_item("snippet"))
        group_id = temp_db.create_group("Code")
        temp_db.add_item_to_group(item_id, group_id)

        assert temp_db.remove_item_from_group(item_id, group_id) is True
        assert temp_db.remove_item_from_group(item_id, group_id) is False
        assert temp_db.get_items_in_group(group_id) == []

    def test_delete_group_keeps_items(self, temp_db: ClipboardDB):
        item_id = temp_db.add_item(make_new_item("snippet"))
        group_id = temp_db.create_group("Code")
        temp_db.add_item_to_group(item_id, group_id)

        assert temp_db.delete_group(group_id) is True

        assert temp_db.get_groups() == []
        assert temp_db.get_item(item_id) is not None
        assert temp_db.get_groups_for_item(item_id) == []

    def test_delete_missing_group(self, temp_db: ClipboardDB):
        assert temp_db.delete_group(999) is False
