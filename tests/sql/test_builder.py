"""Tests for SQL generation."""

import pytest
import sqlglot

from webd2.core.schema import EntitySchema
from webd2.errors import UsageError
from webd2.sql.builder import SqlBuilder, WhereIn, quote_value_if_string, render_id

USER = {
    "tableName": "sPersonal",
    "id": "PersID",
    "name": "string",
    "cardcode": "string",
    "rights": "integer",
    "hide": "boolean",
    "userGroup": {"belongsTo": "userGroup", "fkField": "GrpID"},
    "posts": {"hasMany": "post", "fkField": "UserID"},
}
USER_GROUP = {
    "tableName": "sPepTree",
    "id": "GrpID",
    "name": "string",
    "hide": "boolean",
    "users": {"hasMany": "user", "fkField": "GrpID"},
}


@pytest.fixture
def builder():
    return SqlBuilder(USER)


def _parses(sql):
    return sqlglot.parse_one(sql, read="duckdb") is not None


def test_builder_attributes(builder):
    assert builder.table_name == "sPersonal"
    assert builder.id_field_name == "PersID"
    assert builder.id_field_clause == "PersID as id"
    assert builder.columns == {"name": "string", "cardcode": "string", "rights": "integer", "hide": "boolean"}
    assert builder.columns_names == ["name", "cardcode", "rights", "hide"]
    assert [d.name for d in builder.belongs_to_descriptors] == ["userGroup"]


def test_default_id_field():
    builder = SqlBuilder({"tableName": "rights", "name": "string"})
    assert builder.id_field_clause == "id"
    assert builder.select_many() == "SELECT id, name FROM rights"


def test_builder_accepts_parsed_schema():
    assert SqlBuilder(EntitySchema.from_dict(USER)).select_many() == SqlBuilder(USER).select_many()


def test_quote_value_if_string():
    """Quotes are replaced by a space, never escaped."""
    assert quote_value_if_string("string", "it's") == "'it s'"
    assert quote_value_if_string("string", "abc") == "'abc'"
    assert quote_value_if_string(None, 12) == "'12'"
    assert quote_value_if_string("unknown", "x") == "'x'"
    assert quote_value_if_string("integer", 33) == "33"
    assert quote_value_if_string("boolean", False) == "false"
    assert quote_value_if_string("boolean", True) == "true"

    with pytest.raises(UsageError, match="cannot be None"):
        quote_value_if_string("string", None)


def test_render_id():
    assert render_id(3) == "3"
    assert render_id("3") == "3"
    assert render_id({"id": 4}) == "4"
    assert render_id("abc") == "'abc'"
    with pytest.raises(UsageError):
        render_id(None)


class TestProjection:
    def test_default(self, builder):
        projection = builder.generate_select_fields_part()
        assert projection == "PersID as id, name, cardcode, rights, hide, GrpID as userGroupId"

    def test_id_only(self, builder):
        assert builder.generate_select_fields_part("id") == "PersID as id"

    def test_id_and_relations(self, builder):
        assert builder.generate_select_fields_part("idAndRelations") == "PersID as id, GrpID as userGroupId"

    def test_field_list(self, builder):
        assert builder.generate_select_fields_part(["name", "hide"]) == "name, hide"
        projection = builder.generate_select_fields_part(["id", "name", "userGroup"])
        assert projection == "PersID as id, name, GrpID as userGroupId"

    def test_has_many_never_projected(self, builder):
        assert builder.generate_select_fields_part(["id", "posts"]) == "PersID as id"
        assert "posts" not in builder.generate_select_fields_part()

    @pytest.mark.parametrize("raw", [USER, USER_GROUP, {"tableName": "t", "a": "string", "b": {"belongsTo": "b"}}])
    def test_projections_nest(self, raw):
        """id ⊆ idAndRelations ⊆ default, as sets of selected items."""
        builder = SqlBuilder(raw)

        def items(fields_only):
            return set(builder.generate_select_fields_part(fields_only).split(", "))

        assert items("id") <= items("idAndRelations") <= items(None)


class TestSelectMany:
    def test_plain(self, builder):
        """A user with a group selects the group key under its alias."""
        builder = SqlBuilder(
            {"tableName": "sPersonal", "name": "string", "group": {"belongsTo": "userGroup", "fkField": "GrpID"}}
        )
        assert builder.select_many() == "SELECT id, name, GrpID as userGroupId FROM sPersonal"

    def test_where_and_order_by(self, builder):
        sql = builder.select_many(where={"hide": False, "name": "Vasya"}, order_by=["name", "rights DESC"])
        assert sql == (
            "SELECT PersID as id, name, cardcode, rights, hide, GrpID as userGroupId FROM sPersonal"
            " WHERE hide=false AND name='Vasya' ORDER BY name, rights DESC"
        )
        assert _parses(sql)

    def test_where_on_belongs_to_field(self, builder):
        assert builder.select_many(fields_only="id", where={"userGroup": {"id": 3}}) == (
            "SELECT PersID as id FROM sPersonal WHERE GrpID=3"
        )
        assert builder.select_many(fields_only="id", where={"GrpID": "3"}) == (
            "SELECT PersID as id FROM sPersonal WHERE GrpID=3"
        )

    def test_undefined_where_value(self, builder):
        with pytest.raises(UsageError, match="value of 'name' key is undefined"):
            builder.select_many(where={"name": None})

    def test_ids(self, builder):
        sql = builder.select_many(fields_only="id", ids=[1, "2"])
        assert sql == "SELECT PersID as id FROM sPersonal WHERE PersID IN (1, 2)"
        assert builder.select_many(fields_only="id", ids=[]) == "SELECT PersID as id FROM sPersonal WHERE 1=0"

    def test_rejects_id(self, builder):
        with pytest.raises(UsageError, match="it is wrong to pass the `id` option to select_many"):
            builder.select_many(id=1)

    def test_where_in_belongs_to_parent(self):
        builder = SqlBuilder(USER_GROUP)
        sql = builder.select_many(
            fields_only=["id", "name"],
            where_in=WhereIn(
                parent_table_name="sPersonal",
                parent_fk_name="GrpID",
                parent_where={"hide": False},
                parent_schema=EntitySchema.from_dict(USER),
            ),
        )
        assert sql == (
            "SELECT GrpID as id, name FROM sPepTree"
            " WHERE GrpID IN (SELECT DISTINCT GrpID FROM sPersonal WHERE hide=false)"
        )
        assert _parses(sql)

    def test_where_in_has_many_parent(self, builder):
        sql = builder.select_many(
            fields_only="idAndRelations",
            where={"hide": False},
            where_in=WhereIn(
                parent_table_name="sPepTree",
                relation_fk_name="GrpID",
                parent_id_field_name="GrpID",
                parent_where={"name": "Admins"},
                parent_schema=EntitySchema.from_dict(USER_GROUP),
            ),
        )
        assert sql == (
            "SELECT PersID as id, GrpID as userGroupId FROM sPersonal"
            " WHERE hide=false AND GrpID IN (SELECT GrpID FROM sPepTree WHERE name='Admins')"
        )
        assert _parses(sql)

    def test_where_in_parent_ids(self, builder):
        sql = builder.select_many(
            fields_only="id",
            where_in=WhereIn(
                parent_table_name="sPepTree",
                relation_fk_name="GrpID",
                parent_id_field_name="GrpID",
                parent_ids=[3, "4"],
            ),
        )
        assert sql == (
            "SELECT PersID as id FROM sPersonal WHERE GrpID IN (SELECT GrpID FROM sPepTree WHERE GrpID IN (3, 4))"
        )
        assert _parses(sql)

        with pytest.raises(UsageError, match="parent_id_field_name is undefined"):
            builder.select_many(where_in=WhereIn(parent_table_name="t", parent_fk_name="GrpID", parent_ids=[1]))

    def test_where_in_errors(self, builder):
        with pytest.raises(UsageError, match="parent_table_name is undefined"):
            builder.select_many(where_in=WhereIn(parent_fk_name="GrpID"))
        with pytest.raises(UsageError, match="ambiguous relation_fk_name and parent_fk_name"):
            builder.select_many(where_in=WhereIn(parent_table_name="t", parent_fk_name="a", relation_fk_name="b"))
        with pytest.raises(UsageError, match="parent_id_field_name is undefined"):
            builder.select_many(where_in=WhereIn(parent_table_name="t", relation_fk_name="b"))
        with pytest.raises(UsageError, match="either parent_fk_name or relation_fk_name should be provided"):
            builder.select_many(where_in=WhereIn(parent_table_name="t"))

    def test_missing_table_name(self):
        with pytest.raises(UsageError, match="tableName is not provided"):
            SqlBuilder({"name": "string"}).select_many()


class TestSelectOne:
    def test_by_id(self, builder):
        assert builder.select_one(id=1, fields_only="id") == "SELECT PersID as id FROM sPersonal WHERE PersID=1"

    def test_by_id_with_where(self, builder):
        sql = builder.select_one(id="1", where={"hide": False, "password": "it's"}, fields_only="id")
        assert sql == "SELECT PersID as id FROM sPersonal WHERE PersID=1 AND hide=false AND password='it s'"
        assert _parses(sql)

    def test_by_data(self, builder):
        sql = builder.select_one(data={"name": "John", "rights": 3, "userGroup": {"id": 2}, "unknown": "x"})
        assert sql == (
            "SELECT PersID as id, name, cardcode, rights, hide, GrpID as userGroupId FROM sPersonal"
            " WHERE name='John' AND rights=3 AND GrpID=2"
        )

    def test_both_id_and_data(self, builder):
        with pytest.raises(UsageError, match="both `id` and `data` options are provided"):
            builder.select_one(id="1", data={"name": "x"})

    def test_neither_id_nor_data(self, builder):
        with pytest.raises(UsageError, match="either `id` or `data` option should be provided"):
            builder.select_one()

    def test_where_only_with_id(self, builder):
        with pytest.raises(UsageError, match="`where` can be used only with `id` option"):
            builder.select_one(data={"name": "x"}, where={"hide": False})

    def test_data_without_declared_fields(self, builder):
        with pytest.raises(UsageError, match="`data` has no fields declared in the schema"):
            builder.select_one(data={"unknown": 1})


class TestWrites:
    def test_insert(self, builder):
        sql = builder.insert({"name": "John", "hide": False, "userGroup": {"id": 3}, "posts": [1], "extra": 1})
        assert sql == "INSERT INTO sPersonal (name, hide, GrpID) VALUES ('John', false, 3)"
        assert _parses(sql)

    def test_insert_with_schema_mixin(self):
        builder = SqlBuilder(USER_GROUP)
        sql = builder.insert({"name": "Cooks", "parentid": 1}, {"parentid": "integer"})
        assert sql == "INSERT INTO sPepTree (name, parentid) VALUES ('Cooks', 1)"

    def test_insert_bare_belongs_to_id(self, builder):
        assert builder.insert({"userGroup": 5}) == "INSERT INTO sPersonal (GrpID) VALUES (5)"

    def test_insert_nothing_declared(self, builder):
        with pytest.raises(UsageError, match="no declared fields to insert"):
            builder.insert({"unknown": 1})

    def test_update(self, builder):
        sql = builder.update(5, {"name": "it's", "rights": 2, "userGroup": {"id": 1}, "posts": [3]})
        assert sql == "UPDATE sPersonal SET name='it s', rights=2, GrpID=1 WHERE PersID=5"
        assert _parses(sql)

    def test_update_nothing_declared(self, builder):
        with pytest.raises(UsageError, match="no declared fields to update"):
            builder.update(5, {"posts": [1]})

    def test_delete(self, builder):
        assert builder.delete([1, 2]) == "DELETE FROM sPersonal WHERE PersID IN (1, 2)"
        with pytest.raises(UsageError, match="no ids to delete"):
            builder.delete([])

    def test_select_row_exists(self, builder):
        assert builder.select_row_exists(4) == "SELECT PersID as id FROM sPersonal WHERE PersID=4"
