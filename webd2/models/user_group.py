"""Groups of staff members."""

from collections.abc import Mapping
from typing import Any

from webd2.core.entity import Entity
from webd2.errors import BadRequestError

# new first-level groups always hang under the root node
ROOT_NODE_ID = 1


class UserGroup(Entity):
    schema_object = {
        "tableName": "sPepTree",
        "id": "GrpID",
        "name": "string",
        "hide": "boolean",
        "info": "string",
        "users": {"hasMany": "user", "fkField": "GrpID"},
    }

    def create(self, data: Mapping[str, Any], schema_mixin: Mapping[str, str | None] | None = None) -> dict[str, Any]:
        data = {**data, "parentid": ROOT_NODE_ID}
        return super().create(data, {**(schema_mixin or {}), "parentid": "integer"})

    def validate_before_update(self, id: Any, new_data: Mapping[str, Any], prev_data: dict[str, Any]) -> None:
        """Refuse to hide a group that still has visible users."""
        if not (prev_data.get("hide") is False and new_data.get("hide") is True):
            return

        user_model = self.registry.get_model("user")
        fk_field = self.schema.fields["users"].fk_field

        user_ids = user_model.select_many(fields_only="id", where={fk_field: id, "hide": False})
        if user_ids:
            raise BadRequestError(f"Cannot delete. There are ({len(user_ids)}) users in the group")
