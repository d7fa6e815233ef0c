"""Request orchestrator: validates a request, dispatches it and assembles the response."""

import logging
from collections.abc import Mapping
from typing import Any

from webd2.core.entity import Entity
from webd2.core.registry import EntityRegistry
from webd2.core.relations import PARENT_IDS, PARENT_WHERE, Relations, id_key, unique_ids, with_fields
from webd2.core.relationship import BelongsTo
from webd2.datamapper.context import Context, Request, Response
from webd2.errors import BadRequestError, MethodError, SchemaError, UsageError
from webd2.sql.builder import ID_ONLY
from webd2.validation import format_errors, validate_transforms

logger = logging.getLogger(__name__)

METHODS = ("find", "create", "update", "delete")


def _reference_id(value: Any) -> Any:
    """Id of a belongs-to value: a ``{"id": ...}`` reference or a bare id."""
    if isinstance(value, Mapping):
        return value.get("id")
    return value


def _in_id_order(records: list[dict[str, Any]], ids: list[Any]) -> list[dict[str, Any]]:
    """Records ordered as their ids first appear in ``ids``."""
    position = {id_key(value): index for index, value in enumerate(ids)}
    return sorted(records, key=lambda record: position.get(id_key(record.get("id")), len(position)))


class DataMapper:
    """Runs find/create/update/delete requests against registered entities.

    Transforms are keyed by entity name, each a mapping with optional
    callables:

    - ``input(context, record)`` on create, ``input(context, previous, update)``
      on update, ``input(context, record)`` on delete; returns what is written.
    - ``output(context, record)`` applied to every primary and included record
      of that type before the response is finalized.

    Example:
        mapper = DataMapper(registry, transforms={
            "user": {"output": lambda context, record: {**record, "name": record["name"].strip()}},
        })
        response = mapper.request(type="user", ids=[1, 2], include=[["userGroup"]])
    """

    def __init__(self, registry: EntityRegistry, transforms: Mapping[str, Any] | None = None):
        if registry is None:
            raise UsageError("registry is undefined")
        if not len(registry):
            raise SchemaError("At least one type must be specified.")

        transforms = dict(transforms or {})
        errors = validate_transforms(transforms, registry.names)
        if errors:
            raise SchemaError(format_errors("Transforms", errors))

        registry.validate()

        self.registry = registry
        self.transforms = {name: dict(transforms.get(name) or {}) for name in registry.names}

    def _entity(self, type_name: str) -> Entity:
        return self.registry.get_model(type_name)

    def _relations(self, type_name: str) -> Relations:
        entity = self._entity(type_name)
        return Relations(type_name, entity.schema, self.registry)

    def request(
        self,
        type: str | None = None,
        method: str = "find",
        ids: list[Any] | None = None,
        include: list[Any] | None = None,
        options: Mapping[str, Any] | None = None,
        payload: list[dict[str, Any]] | None = None,
    ) -> Response:
        """Run one request and return its response.

        Raises:
            BadRequestError: If the type is missing or unknown
            MethodError: If the method is not one of find/create/update/delete
        """
        if not type:
            raise BadRequestError("UnspecifiedType")
        if type not in self.registry.names:
            raise BadRequestError(f'InvalidType: "{type}"')
        if method not in METHODS:
            raise MethodError(f'InvalidMethod: "{method}"')

        context = Context(
            request=Request(
                type=type,
                method=method,
                ids=unique_ids(list(ids)) if ids is not None else None,
                include=list(include) if isinstance(include, list | tuple) else include or [],
                options=dict(options or {}),
                payload=list(payload) if payload is not None else None,
            )
        )
        logger.debug(f"request: {method} {type}")

        context = getattr(self, method)(context)

        response = context.response
        if method == "create":
            response.status = "created"
        elif response.payload is None:
            response.status = "empty"
        else:
            response.status = "ok"
        return response

    def find(self, context: Context) -> Context:
        request = context.request
        entity = self._entity(request.type)

        self._ensure_include_fields(request)

        query = dict(request.options)
        if request.ids is not None:
            query["ids"] = request.ids

        rows = entity.select_many(**query)
        records = self._relations(request.type).just_embed_joined_ids(
            rows, {PARENT_WHERE: query.get("where"), PARENT_IDS: request.ids}
        )
        if request.ids is not None and not query.get("order_by"):
            records = _in_id_order(records, request.ids)
        context.response.records = records

        context = self.include(context)
        return self.end(context)

    def create(self, context: Context) -> Context:
        request = context.request
        if not request.payload:
            raise BadRequestError("CreateRecordsInvalid")

        entity = self._entity(request.type)
        transform_input = self.transforms[request.type].get("input")

        records = []
        with entity.db.transaction() as transaction:
            context.transaction = transaction
            for record in request.payload:
                if transform_input:
                    record = transform_input(context, dict(record))
                records.append(entity.create(record))

        context.response.records = self._relations(request.type).transform_belongs_to_ids(records)
        return self.end(context)

    def update(self, context: Context) -> Context:
        request = context.request
        if not request.payload:
            raise BadRequestError("UpdateRecordsInvalid")
        if any(item.get("id") is None for item in request.payload):
            raise BadRequestError("UpdateRecordsInvalid: every update should carry `id`")

        entity = self._entity(request.type)
        relations = self._relations(request.type)
        transform_input = self.transforms[request.type].get("input")

        records = []
        with entity.db.transaction() as transaction:
            context.transaction = transaction
            for item in request.payload:
                id = item["id"]
                update = {key: value for key, value in item.items() if key != "id"}
                if transform_input:
                    previous = relations.transform_belongs_to_ids([entity.select_one(id=id)])[0]
                    update = transform_input(context, previous, update)
                records.append(entity.update(id, update))

        context.response.records = relations.transform_belongs_to_ids(records)
        return self.end(context)

    def delete(self, context: Context) -> Context:
        request = context.request
        if not request.ids:
            raise BadRequestError("DeleteRecordsInvalid")

        entity = self._entity(request.type)
        transform_input = self.transforms[request.type].get("input")

        with entity.db.transaction() as transaction:
            context.transaction = transaction
            if transform_input:
                for row in entity.select_many(ids=request.ids):
                    transform_input(context, row)
            entity.delete(request.ids)

        return self.end(context)

    def _validate_include_option(self, type_name: str, include: Any) -> None:
        if not isinstance(include, list | tuple):
            raise BadRequestError('"include" option should be an array')

        schema = self._entity(type_name).schema
        for item in include:
            if not isinstance(item, list | tuple) or not item:
                raise BadRequestError(f"\"include\" '{item}' field descriptor should be an array")

            field_name = item[0]
            if field_name not in schema.fields:
                raise BadRequestError(f"include: there is no '{field_name}' field in '{type_name}' type")
            if schema.get_link(field_name) is None:
                raise BadRequestError(f"include: '{field_name}' field is not a link")
            if len(item) > 1 and not isinstance(item[1], Mapping):
                raise BadRequestError(f"include: options for '{field_name}' is not an object")

    def _ensure_include_fields(self, request: Request) -> Request:
        """Add included belongs-to fields to a restricted ``fields_only`` so their keys get selected."""
        if not request.include:
            return request

        self._validate_include_option(request.type, request.include)

        fields_only = request.options.get("fields_only")
        if not isinstance(fields_only, list):
            return request

        schema = self._entity(request.type).schema
        fields_only = list(fields_only)
        for item in request.include:
            if isinstance(schema.get_link(item[0]), BelongsTo) and item[0] not in fields_only:
                fields_only.append(item[0])
        request.options["fields_only"] = fields_only
        return request

    def include(self, context: Context) -> Context:
        """Fetch the records named by ``include`` into ``response.include``, keyed by type."""
        request = context.request
        response = context.response
        if not response.records or not request.include:
            return context

        self._validate_include_option(request.type, request.include)
        schema = self._entity(request.type).schema

        for item in request.include:
            link = schema.get_link(item[0])
            link_options = dict(item[1]) if len(item) > 1 else {}
            target = self._entity(link.target)

            if isinstance(link, BelongsTo):
                ids = unique_ids([_reference_id(record.get(link.name)) for record in response.records])
            else:
                ids = unique_ids([child_id for record in response.records for child_id in record.get(link.name) or []])

            if not ids:
                continue

            logger.debug(f"include: {link.target} for '{link.name}' of {request.type}")
            if "fields_only" in link_options:
                link_options["fields_only"] = with_fields(link_options["fields_only"], [ID_ONLY])
            rows = target.select_many(**{**link_options, "ids": ids})
            rows = self._relations(link.target).transform_belongs_to_ids(rows)

            if not isinstance(link, BelongsTo):
                # include options may filter children out of the id lists
                fetched = {id_key(row["id"]) for row in rows}
                for record in response.records:
                    if link.name in record:
                        record[link.name] = [i for i in record[link.name] if id_key(i) in fetched]

            if response.include is None:
                response.include = {}
            included = response.include.setdefault(link.target, [])
            known = {id_key(row["id"]) for row in included}
            included.extend(row for row in rows if id_key(row["id"]) not in known)

        return context

    def end(self, context: Context) -> Context:
        """Apply output transforms and move records and includes under ``payload``."""
        response = context.response
        context.transaction = None

        if response.records is None:
            return context

        payload: dict[str, Any] = {"records": self._apply_output(context, context.request.type, response.records)}
        if response.include:
            payload["include"] = {
                type_name: self._apply_output(context, type_name, records)
                for type_name, records in response.include.items()
            }

        response.payload = payload
        response.records = None
        response.include = None
        return context

    def _apply_output(self, context: Context, type_name: str, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        output = self.transforms.get(type_name, {}).get("output")
        if not output:
            return records
        return [output(context, record) for record in records]
