"""End-to-end tests: gateways, relations engine and data mapper on DuckDB."""

import pytest

from webd2.core.relations import Relations
from webd2.datamapper.mapper import DataMapper
from webd2.errors import DatabaseError, NotFoundError


@pytest.fixture
def users(staff_registry):
    return staff_registry.get_model("user")


@pytest.fixture
def groups(staff_registry):
    return staff_registry.get_model("userGroup")


def test_create_then_find_by_value(users, staff_rows):
    data = {"name": "Kate", "hide": False, "userGroup": {"id": staff_rows["cooks"]}}
    created = users.create(data)

    found = users.select_one(data={"name": created["name"], "hide": created["hide"], "userGroup": data["userGroup"]})
    assert found["id"] == created["id"]
    assert created == {"id": created["id"], "name": "Kate", "hide": False, "userGroupId": staff_rows["cooks"]}


def test_select_one_missing(users, staff_rows):
    with pytest.raises(NotFoundError, match="db returned no data") as info:
        users.select_one(id=9999)
    assert info.value.code == "ENOTFOUND"


def test_update_missing(users, staff_rows):
    with pytest.raises(NotFoundError, match="row with id: 9999 does not exist"):
        users.update(9999, {"name": "x"})


def test_rows_are_cast(staff_registry, staff_rows):
    account = staff_registry.get_model("userAccount").select_one(id=staff_rows["john"])

    assert account["hide"] is False
    assert account["password"] == ""
    assert account["name"] == "John"


def test_full_embed(staff_registry, groups, staff_rows):
    relations = Relations("userGroup", groups.schema, staff_registry)
    rows = relations.fetch_and_embed_joined(groups.select_many(order_by="name"), {"users": {"fields_only": ["name"]}})

    admins, cooks = rows
    assert admins["name"] == "Admins"
    assert admins["users"] == [
        {"id": staff_rows["ann"], "name": "Ann", "userGroup": {"id": staff_rows["admins"]}},
        {"id": staff_rows["john"], "name": "John", "userGroup": {"id": staff_rows["admins"]}},
    ]
    assert [user["name"] for user in cooks["users"]] == ["Bob"]


def test_belongs_to_embed(staff_registry, users, staff_rows):
    relations = Relations("user", users.schema, staff_registry)
    rows = relations.fetch_and_embed_joined(users.select_many())

    assert [(row["name"], row["userGroup"]["name"]) for row in rows] == [
        ("Ann", "Admins"),
        ("Bob", "Cooks"),
        ("John", "Admins"),
    ]


def test_has_many_ids_follow_parent_filter(staff_registry, staff_rows):
    mapper = DataMapper(staff_registry)
    response = mapper.request(type="userGroup", options={"where": {"name": "Cooks"}})

    assert response.payload["records"] == [
        {"id": staff_rows["cooks"], "name": "Cooks", "hide": False, "info": "", "users": [staff_rows["bob"]]}
    ]


def test_failed_write_rolls_back_whole_request(staff_registry, staff_rows):
    mapper = DataMapper(staff_registry)

    with pytest.raises(DatabaseError):
        mapper.request(
            type="user",
            method="create",
            payload=[
                {"name": "Kate", "userGroup": {"id": staff_rows["cooks"]}},
                {"name": "Broken", "userGroup": {"id": "not a number"}},
            ],
        )

    names = [user["name"] for user in staff_registry.get_model("user").select_many()]
    assert names == ["Ann", "Bob", "John"]
    assert not staff_registry.db.transport.is_open
