"""Request/response state carried through one DataMapper request."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from webd2.db.database import Database


@dataclass
class Request:
    type: str | None = None
    method: str = "find"
    ids: list[Any] | None = None
    # query options for the primary type: fields_only, where, order_by
    options: dict[str, Any] = field(default_factory=dict)
    # [[link_name], [link_name, {query options}], ...]
    include: list[Any] = field(default_factory=list)
    payload: list[dict[str, Any]] | None = None


@dataclass
class Response:
    """Response accumulator.

    ``records`` and ``include`` are filled while the request runs; ``end()``
    moves them under ``payload``.
    """

    payload: dict[str, Any] | None = None
    status: str | None = None
    records: list[dict[str, Any]] | None = None
    include: dict[str, list[dict[str, Any]]] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"payload": self.payload, "status": self.status}


@dataclass
class Context:
    request: Request
    response: Response = field(default_factory=Response)
    # open database while input transforms run inside a write transaction
    transaction: "Database | None" = None
