"""Tests for sheetsdb.row module, with the worksheet replaced by mocks."""

from unittest import mock

import pytest

from sheetsdb.row import UNSET, Row
from sheetsdb.schema import Attribute, BelongsToMany, BelongsToOne, HasMany, HasOne


class Owner(Row):
    id = Attribute(int)
    first_name = Attribute()
    pet_ids = Attribute(int, multiple=True)
    best_friend_id = Attribute(int)

    pets = HasMany("pets", key="pet_ids")
    best_friend = HasOne("users", key="best_friend_id")
    created_tasks = BelongsToMany("tasks", foreign_key="creator_id")
    favorite_task = BelongsToOne("tasks", foreign_key="fan_id")


PERSISTED = {"id": 12, "first_name": "Anna", "pet_ids": [1, 2], "best_friend_id": 5}
# key slots of has associations are left out of the attribute values
ATTRIBUTES = {"id": 12, "first_name": "Anna"}


def make_row(values=None, row_position=2):
    values = dict(PERSISTED if values is None else values)
    worksheet = mock.MagicMock()
    worksheet.attribute_at_row_position.side_effect = lambda name, pos: values[name]
    return Owner(worksheet, row_position), worksheet


# ===== attribute state =====


def test_read_is_lazy_and_cached():
    row, worksheet = make_row()
    worksheet.attribute_at_row_position.assert_not_called()
    assert row.first_name == "Anna"
    assert row.first_name == "Anna"
    worksheet.attribute_at_row_position.assert_called_once_with("first_name", 2)


def test_staged_value_wins():
    row, worksheet = make_row()
    row.first_name = "Bob"
    assert row.first_name == "Bob"
    assert row.first_name == "Bob"
    worksheet.attribute_at_row_position.assert_not_called()
    assert row.get_persisted_attribute("first_name") == "Anna"
    assert row.get_modified_attribute("first_name") == "Bob"


def test_nothing_staged():
    row, _ = make_row()
    assert row.get_modified_attribute("first_name") is UNSET
    assert row.staged_attributes == {}


def test_staging_none_clears():
    row, _ = make_row()
    row.first_name = None
    assert row.first_name is None
    assert row.staged_attributes == {"first_name": None}


def test_staging_never_writes():
    row, worksheet = make_row()
    row.first_name = "Bob"
    row.stage_attributes({"id": 13, "pet_ids": [4]})
    worksheet.update_attributes_at_row_position.assert_not_called()
    assert row.staged_attributes == {"first_name": "Bob", "id": 13, "pet_ids": [4]}


def test_new_record_reads_without_storage():
    worksheet = mock.MagicMock()
    row = Owner(worksheet)
    assert row.new_record is True
    assert row.first_name is None
    assert row.pet_ids == []
    worksheet.attribute_at_row_position.assert_not_called()


def test_attributes():
    row, _ = make_row()
    assert row.attributes == ATTRIBUTES


def test_association_keys_are_flagged():
    attributes = Owner.schema.attributes
    assert attributes["pet_ids"].association is True
    assert attributes["best_friend_id"].association is True
    assert attributes["first_name"].association is False
    # the foreign key of a belongs association lives on the remote row type
    assert "creator_id" not in attributes


# ===== save and reload =====


def test_save_writes_staged_batch():
    row, worksheet = make_row()
    row.first_name = "Bob"
    row.pet_ids = [3]
    assert row.save() is row
    worksheet.update_attributes_at_row_position.assert_called_once_with(
        {"first_name": "Bob", "pet_ids": [3]}, 2
    )
    worksheet.next_available_row_position.assert_not_called()


def test_save_clears_caches():
    row, worksheet = make_row()
    assert row.first_name == "Anna"
    worksheet.spreadsheet.find_associations_by_ids.return_value = []
    assert row.pets == []
    row.first_name = "Bob"
    row.save()
    assert row.loaded_attributes == {}
    assert row.loaded_associations == {}
    # next read goes to the worksheet again
    row.first_name  # noqa: B018
    assert worksheet.attribute_at_row_position.call_count == 3  # noqa: PLR2004


def test_save_new_record_allocates_position():
    worksheet = mock.MagicMock()
    worksheet.next_available_row_position.return_value = 9
    row = Owner(worksheet)
    row.first_name = "Eve"
    row.save()
    assert row.row_position == 9  # noqa: PLR2004
    assert row.new_record is False
    worksheet.update_attributes_at_row_position.assert_called_once_with(
        {"first_name": "Eve"}, 9
    )


def test_save_new_record_without_values_raises():
    worksheet = mock.MagicMock()
    row = Owner(worksheet)
    row.first_name = None
    with pytest.raises(ValueError, match="without any values"):
        row.save()
    assert row.new_record is True
    worksheet.next_available_row_position.assert_not_called()
    worksheet.update_attributes_at_row_position.assert_not_called()


def test_save_cascades_to_foreign_items():
    row, _ = make_row()
    first, second = mock.MagicMock(), mock.MagicMock()
    row.mark_foreign_item_changed(first)
    row.mark_foreign_item_changed(second)
    row.mark_foreign_item_changed(first)
    assert len(row.changed_foreign_items) == 2  # noqa: PLR2004
    row.save()
    first.save.assert_called_once_with()
    second.save.assert_called_once_with()
    assert row.changed_foreign_items == []


def test_update_attributes():
    row, worksheet = make_row()
    assert row.update_attributes({"first_name": "Cleo"}) is row
    worksheet.update_attributes_at_row_position.assert_called_once_with(
        {"first_name": "Cleo"}, 2
    )


def test_reload():
    row, worksheet = make_row()
    row.first_name = "Bob"
    row.reload()
    worksheet.reload.assert_called_once_with()
    assert row.first_name == "Anna"


# ===== element helpers =====


def test_add_element_to_multiple_attribute():
    row, _ = make_row()
    with mock.patch.object(row, "stage_attribute_modification") as writer:
        row.add_element_to_attribute("pet_ids", 2)
    writer.assert_not_called()

    row.add_element_to_attribute("pet_ids", 3)
    assert row.pet_ids == [1, 2, 3]


def test_remove_element_from_multiple_attribute():
    row, _ = make_row()
    with mock.patch.object(row, "stage_attribute_modification") as writer:
        row.remove_element_from_attribute("pet_ids", 7)
    writer.assert_not_called()

    row.remove_element_from_attribute("pet_ids", 1)
    assert row.pet_ids == [2]


def test_add_and_remove_single_valued():
    row, _ = make_row()
    with mock.patch.object(row, "stage_attribute_modification") as writer:
        row.add_element_to_attribute("best_friend_id", 5)
        row.remove_element_from_attribute("best_friend_id", 9)
    writer.assert_not_called()

    row.add_element_to_attribute("best_friend_id", 6)
    assert row.best_friend_id == 6  # noqa: PLR2004
    row.remove_element_from_attribute("best_friend_id", 6)
    assert row.best_friend_id is None
    assert row.staged_attributes == {"best_friend_id": None}


# ===== keyed associations =====


def test_has_many_reads_by_ids_and_memoizes():
    row, worksheet = make_row()
    pets = [mock.MagicMock(), mock.MagicMock()]
    worksheet.spreadsheet.find_associations_by_ids.return_value = pets
    assert row.pets == pets
    assert row.pets == pets
    worksheet.spreadsheet.find_associations_by_ids.assert_called_once_with(
        "pets", [1, 2]
    )


def test_has_many_without_ids():
    row, worksheet = make_row({**PERSISTED, "pet_ids": []})
    assert row.pets == []
    worksheet.spreadsheet.find_associations_by_ids.assert_not_called()


def test_has_one():
    row, worksheet = make_row()
    friend = mock.MagicMock()
    worksheet.spreadsheet.find_associations_by_ids.return_value = [friend]
    assert row.best_friend is friend
    worksheet.spreadsheet.find_associations_by_ids.assert_called_once_with(
        "users", [5]
    )


def test_has_one_missing():
    row, worksheet = make_row({**PERSISTED, "best_friend_id": None})
    assert row.best_friend is None
    worksheet.spreadsheet.find_associations_by_ids.assert_not_called()

    row, worksheet = make_row()
    worksheet.spreadsheet.find_associations_by_ids.return_value = []
    assert row.best_friend is None


def test_has_many_write_sets_key():
    row, worksheet = make_row()
    pet1, pet2 = mock.MagicMock(), mock.MagicMock()
    pet1.read_attribute.return_value = 7
    pet2.read_attribute.return_value = 8
    row.pets = [pet1, pet2]
    assert row.pet_ids == [7, 8]
    assert row.pets == [pet1, pet2]
    worksheet.spreadsheet.find_associations_by_ids.assert_not_called()


def test_has_one_write_sets_key():
    row, _ = make_row()
    friend = mock.MagicMock()
    friend.read_attribute.return_value = 99
    row.best_friend = friend
    assert row.best_friend_id == 99  # noqa: PLR2004
    assert row.best_friend is friend
    row.best_friend = None
    assert row.best_friend_id is None


# ===== foreign-key scan associations =====


def test_belongs_to_many_reads_by_scan():
    row, worksheet = make_row()
    tasks = [mock.MagicMock()]
    worksheet.spreadsheet.find_associations_by_attribute.return_value = tasks
    assert row.created_tasks == tasks
    worksheet.spreadsheet.find_associations_by_attribute.assert_called_once_with(
        "tasks", "creator_id", 12
    )


def test_belongs_to_many_reconciliation():
    row, worksheet = make_row()
    a, b, c = mock.MagicMock(), mock.MagicMock(), mock.MagicMock()
    worksheet.spreadsheet.find_associations_by_attribute.return_value = [a, b]

    row.created_tasks = [b, c]

    a.remove_element_from_attribute.assert_called_once_with("creator_id", 12)
    a.add_element_to_attribute.assert_not_called()
    c.add_element_to_attribute.assert_called_once_with("creator_id", 12)
    c.remove_element_from_attribute.assert_not_called()
    b.add_element_to_attribute.assert_not_called()
    b.remove_element_from_attribute.assert_not_called()
    assert len(row.changed_foreign_items) == 2  # noqa: PLR2004
    assert set(row.changed_foreign_items) == {a, c}
    created = row.created_tasks
    assert created[0] is b
    assert created[1] is c

    # remote rows are only saved together with the local row
    a.save.assert_not_called()
    c.save.assert_not_called()
    row.save()
    worksheet.update_attributes_at_row_position.assert_called_once_with({}, 2)
    a.save.assert_called_once_with()
    c.save.assert_called_once_with()
    b.save.assert_not_called()


def test_belongs_to_one_assign():
    row, worksheet = make_row()
    task = mock.MagicMock()
    worksheet.spreadsheet.find_associations_by_attribute.return_value = []
    row.favorite_task = task
    task.add_element_to_attribute.assert_called_once_with("fan_id", 12)
    assert row.changed_foreign_items == [task]
    assert row.favorite_task is task


def test_belongs_to_one_reads_first_match():
    row, worksheet = make_row()
    first, second = mock.MagicMock(), mock.MagicMock()
    worksheet.spreadsheet.find_associations_by_attribute.return_value = [first, second]
    assert row.favorite_task is first


def test_belongs_to_without_id():
    row, worksheet = make_row({**PERSISTED, "id": None})
    assert row.created_tasks == []
    assert row.favorite_task is None
    worksheet.spreadsheet.find_associations_by_attribute.assert_not_called()
    with pytest.raises(ValueError, match='Cannot assign "created_tasks"'):
        row.created_tasks = [mock.MagicMock()]


def test_select_association():
    row, worksheet = make_row()
    cat, dog = mock.MagicMock(kind="cat"), mock.MagicMock(kind="dog")
    worksheet.spreadsheet.find_associations_by_ids.return_value = [cat, dog]
    assert row.select_association("pets", lambda pet: pet.kind == "dog") == [dog]


# ===== export and identity =====


def test_to_dict_depth():
    row, worksheet = make_row()
    pet = mock.MagicMock()
    pet.to_dict.return_value = {"id": 1}
    worksheet.spreadsheet.find_associations_by_ids.side_effect = (
        lambda table, ids: {"pets": [pet], "users": []}[table]
    )
    worksheet.spreadsheet.find_associations_by_attribute.return_value = []

    assert row.to_dict() == ATTRIBUTES
    assert row.to_dict(depth=2) == {
        **ATTRIBUTES,
        "pets": [{"id": 1}],
        "best_friend": None,
        "created_tasks": [],
        "favorite_task": None,
    }
    pet.to_dict.assert_called_once_with(depth=1)


def test_identity():
    worksheet = mock.MagicMock()
    assert Owner(worksheet, 2) == Owner(worksheet, 2)
    assert hash(Owner(worksheet, 2)) == hash(Owner(worksheet, 2))
    assert Owner(worksheet, 2) != Owner(worksheet, 3)
    assert Owner(worksheet, 2) != Owner(mock.MagicMock(), 2)

    class Other(Row):
        pass

    assert Owner(worksheet, 2) != Other(worksheet, 2)
    assert repr(Owner(worksheet)) == "<Owner row=new>"
