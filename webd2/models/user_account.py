"""Staff accounts: the personnel table with credentials and rights."""

from webd2.core.entity import Entity


class UserAccount(Entity):
    schema_object = {
        "tableName": "sPersonal",
        "id": "PersID",
        "name": "string",
        "password": "string",
        "cardcode": "string",
        "rights": "string",
        "hide": "boolean",
        "userGroup": {"belongsTo": "userGroup", "fkField": "GrpID"},
    }
