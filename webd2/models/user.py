"""Staff members (visible rows of the personnel table)."""

import logging
from typing import Any

from webd2.core.entity import Entity
from webd2.errors import BadRequestError, NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)


class User(Entity):
    schema_object = {
        "tableName": "sPersonal",
        "id": "PersID",
        "name": "string",
        "hide": "boolean",
        "userGroup": {"belongsTo": "userGroup", "fkField": "GrpID"},
    }

    def select_many(self, **options: Any) -> list[dict[str, Any]]:
        """Visible users ordered by name unless the caller says otherwise."""
        defaults = {"where": {"hide": False}, "order_by": "name"}
        return super().select_many(**{**defaults, **options})

    def password_verify(self, id: Any, password: str) -> dict[str, Any]:
        """The visible user with this id and password.

        Raises:
            BadRequestError: If id or password is missing
            UnauthorizedError: If they do not match
        """
        logger.debug(f"{self.name}:password_verify")

        if not id or not password:
            raise BadRequestError("submit id and password")

        try:
            return self.select_one(id=id, where={"hide": False, "password": password})
        except NotFoundError as e:
            raise UnauthorizedError("wrong credentials") from e
