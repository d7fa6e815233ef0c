"""Fetching related rows and embedding them into a primary row set."""

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from webd2.core.relationship import BelongsTo, HasMany, find_inverse_field_name
from webd2.core.schema import EntitySchema
from webd2.errors import SchemaError, UsageError
from webd2.sql.builder import ID_AND_RELATIONS, ID_ONLY, WhereIn

if TYPE_CHECKING:
    from webd2.core.entity import Entity
    from webd2.core.registry import EntityRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# keys of the primary query's own filter in relation options
PARENT_WHERE = "parent_where"
PARENT_IDS = "parent_ids"


@dataclass
class RelationData:
    """Rows fetched for one link, handed from a fetch stage to its embed stage."""

    field_name: str
    rows: list[dict[str, Any]]
    # belongs-to: alias the parent rows carry the foreign key under
    fk_as: str | None = None
    # has-many: child field pointing back to the parent and its foreign key alias
    inverse_field_name: str | None = None
    inverse_fk_as: str | None = None
    # has-many: other belongs-to links of the child, reduced to references
    child_belongs_to: list[BelongsTo] = field(default_factory=list)


def id_key(value: Any) -> str:
    """Ids may come back as text or as numbers; compare them as text."""
    return str(value)


def unique_ids(values: list[Any]) -> list[Any]:
    """Distinct non-null values in first-seen order."""
    seen = set()
    result = []
    for value in values:
        if value is None or id_key(value) in seen:
            continue
        seen.add(id_key(value))
        result.append(value)
    return result


def with_fields(fields_only: str | list[str] | None, names: list[str]) -> str | list[str] | None:
    """A restricted projection extended with ``names``; full projections stay as they are."""
    if not fields_only or fields_only == ID_AND_RELATIONS:
        return fields_only
    wanted = [fields_only] if isinstance(fields_only, str) else list(fields_only)
    return wanted + [name for name in names if name not in wanted]


class Relations:
    """Relations engine for one entity.

    Options accepted by the fetch stages, ``fetch_and_embed_joined`` and
    ``just_embed_joined_ids``:

        {
            "parent_where": {"hide": False},       # the primary query's own filter
            "parent_ids": [10, 11],                # and its id restriction
            "users": {"where": {"hide": False}},   # per-link query options
            "userGroup": {"order_by": "name"},
        }

    Per-link options are looked up by the link field name, then by the
    target entity name.
    """

    def __init__(
        self,
        model_name: str,
        schema: EntitySchema,
        registry: "EntityRegistry",
        max_workers: int | None = None,
    ):
        if model_name is None:
            raise UsageError("model_name is undefined")
        if schema is None:
            raise UsageError("schema is undefined")
        if not isinstance(schema, EntitySchema):
            raise UsageError("schema should be an EntitySchema")
        if schema.table_name is None:
            raise UsageError("schema tableName is undefined")
        if registry is None:
            raise UsageError("registry is undefined")

        logger.debug(f"Relations for '{model_name}' model")

        self.model_name = model_name
        self.schema = schema
        self.registry = registry
        self.max_workers = max_workers

        self.belongs_to_descriptors = schema.belongs_to
        self.has_many_descriptors = schema.has_many

    def _relation_model(self, link: BelongsTo | HasMany) -> "Entity":
        relation_model = self.registry.model(link.target)
        if relation_model is None:
            raise SchemaError(
                f"there is no registered '{link.target}' model required by '{link.name}' link of '{self.model_name}'"
            )
        return relation_model

    def _link_options(self, link: BelongsTo | HasMany, options: Mapping[str, Any]) -> dict[str, Any]:
        link_options = options.get(link.name)
        if link_options is None:
            link_options = options.get(link.target)
        return dict(link_options or {})

    def _gather(self, fn: Callable[[T], R], items: list[T]) -> list[R]:
        """Run ``fn`` over ``items`` concurrently, results in input order."""
        if len(items) < 2:
            return [fn(item) for item in items]

        with ThreadPoolExecutor(max_workers=self.max_workers or len(items)) as executor:
            futures = [executor.submit(fn, item) for item in items]
            return [future.result() for future in futures]

    def attributes_of_relations(self) -> dict[str, list[str]]:
        """Link field name -> attributes the serializer emits for the related entity."""
        return {
            link.name: self._relation_model(link).as_relation_attributes_serialize
            for link in self.belongs_to_descriptors + self.has_many_descriptors
        }

    def _fetch_belongs_to(
        self, parent_rows: list[dict[str, Any]], options: Mapping[str, Any] | None = None
    ) -> list[RelationData]:
        """One query per belongs-to link, for the distinct foreign keys of ``parent_rows``."""
        logger.debug(f"{self.model_name}:_fetch_belongs_to")
        options = options or {}

        def fetch(descr: BelongsTo) -> RelationData:
            relation_model = self._relation_model(descr)
            ids = unique_ids([row[descr.fk_as] for row in parent_rows if descr.fk_as in row])
            rows = []
            if ids:
                link_options = self._link_options(descr, options)
                if "fields_only" in link_options:
                    link_options["fields_only"] = with_fields(link_options["fields_only"], [ID_ONLY])
                rows = relation_model.select_many(**{**link_options, "ids": ids})
            return RelationData(field_name=descr.name, rows=rows, fk_as=descr.fk_as)

        return self._gather(fetch, self.belongs_to_descriptors)

    def _embed_belongs_to(
        self, parent_rows: list[dict[str, Any]], relations_data: list[RelationData]
    ) -> list[dict[str, Any]]:
        """Replace foreign key aliases by the fetched related rows.

        A null key becomes None. A key with no fetched row stays a bare ``{"id": key}``
        reference. Rows without the alias are left as they are.
        """
        logger.debug(f"{self.model_name}:_embed_belongs_to")

        indexes = [{id_key(row["id"]): row for row in rel.rows} for rel in relations_data]

        result = []
        for parent_row in parent_rows:
            parent_row = dict(parent_row)
            for rel, by_id in zip(relations_data, indexes):
                if rel.fk_as not in parent_row:
                    continue
                fk = parent_row.pop(rel.fk_as)
                if fk is None:
                    parent_row[rel.field_name] = None
                else:
                    parent_row[rel.field_name] = dict(by_id.get(id_key(fk), {"id": fk}))
            result.append(parent_row)
        return result

    def transform_belongs_to_ids(self, parent_rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Replace foreign key aliases by ``{"id": key}`` references without fetching."""
        logger.debug(f"{self.model_name}:transform_belongs_to_ids")
        return [_to_references(row, self.belongs_to_descriptors) for row in parent_rows]

    def _fetch_has_many(self, options: Mapping[str, Any] | None = None, only_ids: bool = False) -> list[RelationData]:
        """One correlated query per has-many link, scoped by ``parent_where``."""
        logger.debug(f"{self.model_name}:_fetch_has_many")
        options = options or {}

        def fetch(descr: HasMany) -> RelationData:
            relation_model = self._relation_model(descr)
            inverse_field_name = find_inverse_field_name(self.model_name, descr, relation_model.schema)
            inverse = relation_model.schema.fields.get(inverse_field_name)
            if not isinstance(inverse, BelongsTo):
                raise SchemaError(
                    f"'{descr.name}' link of '{self.model_name}' has no inverse belongsTo link in '{descr.target}'"
                )

            link_options = self._link_options(descr, options)
            if only_ids:
                link_options["fields_only"] = ID_AND_RELATIONS
            elif "fields_only" in link_options:
                link_options["fields_only"] = with_fields(link_options["fields_only"], [ID_ONLY, inverse_field_name])

            link_options["where_in"] = WhereIn(
                parent_table_name=self.schema.table_name,
                relation_fk_name=descr.fk_field,
                parent_id_field_name=self.schema.id_field,
                parent_where=options.get(PARENT_WHERE),
                parent_ids=options.get(PARENT_IDS),
                parent_schema=self.schema,
            )

            return RelationData(
                field_name=descr.name,
                rows=relation_model.select_many(**link_options),
                inverse_field_name=inverse_field_name,
                inverse_fk_as=inverse.fk_as,
                child_belongs_to=[d for d in relation_model.schema.belongs_to if d.name != inverse_field_name],
            )

        return self._gather(fetch, self.has_many_descriptors)

    def _embed_has_many(
        self,
        parent_rows: list[dict[str, Any]],
        relations_data: list[RelationData],
        only_ids: bool = False,
    ) -> list[dict[str, Any]]:
        """Distribute fetched children over their parents by foreign key.

        Each child goes to exactly one parent and gets a ``{"id": parent_id}``
        back-reference under its inverse field. With ``only_ids`` parents get
        id lists instead of child rows.
        """
        logger.debug(f"{self.model_name}:_embed_has_many")

        groups = []
        for rel in relations_data:
            by_parent: dict[str, list[dict[str, Any]]] = {}
            for child in rel.rows:
                by_parent.setdefault(id_key(child.get(rel.inverse_fk_as)), []).append(child)
            groups.append(by_parent)

        result = []
        for parent_row in parent_rows:
            parent_row = dict(parent_row)
            parent_id = parent_row.get("id")
            for rel, by_parent in zip(relations_data, groups):
                children = by_parent.get(id_key(parent_id), []) if parent_id is not None else []
                if only_ids:
                    parent_row[rel.field_name] = [child["id"] for child in children]
                    continue

                embedded = []
                for child in children:
                    child = _to_references(child, rel.child_belongs_to)
                    child.pop(rel.inverse_fk_as, None)
                    child[rel.inverse_field_name] = {"id": parent_id}
                    embedded.append(child)
                parent_row[rel.field_name] = embedded
            result.append(parent_row)
        return result

    def fetch_and_embed_joined(
        self, parent_rows: list[dict[str, Any]], options: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Embed full related rows for every link."""
        logger.debug(f"{self.model_name}:fetch_and_embed_joined")

        belongs_to_data = self._fetch_belongs_to(parent_rows, options)
        rows = self._embed_belongs_to(parent_rows, belongs_to_data)

        has_many_data = self._fetch_has_many(options)
        return self._embed_has_many(rows, has_many_data)

    def just_embed_joined_ids(
        self, parent_rows: list[dict[str, Any]], options: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Belongs-to links as ``{"id": key}`` references, has-many links as id lists."""
        logger.debug(f"{self.model_name}:just_embed_joined_ids")

        has_many_data = self._fetch_has_many(options, only_ids=True)
        rows = self._embed_has_many(parent_rows, has_many_data, only_ids=True)
        return self.transform_belongs_to_ids(rows)


def _to_references(row: dict[str, Any], descriptors: list[BelongsTo]) -> dict[str, Any]:
    row = dict(row)
    for descr in descriptors:
        if descr.fk_as not in row:
            continue
        fk = row.pop(descr.fk_as)
        row[descr.name] = None if fk is None else {"id": fk}
    return row
