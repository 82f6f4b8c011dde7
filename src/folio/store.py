# folio/store.py
from typing import Iterator, List, Optional, Tuple

import attrs
from sqlalchemy.orm import Session, aliased

from . import models
from .errors import IntegrityError


@attrs.define(slots=True, frozen=True)
class ListedResource:
    """A listing joined to its resource, the resource's type and the thumbnail candidates."""
    resource_id: int
    rclass: str
    mime: str
    name: str
    timestamp: int
    description: Optional[str]
    rbin_id: int
    own_thumb_id: Optional[int]         # res.id declared by the resource itself
    own_thumb_rbin_id: Optional[int]
    own_thumb_mime: Optional[str]
    type_thumb_id: Optional[int]        # res.id declared as the type's default
    type_thumb_rbin_id: Optional[int]
    type_thumb_mime: Optional[str]


class TreeStore:
    """Read-only query surface over the tree store, used by the compiler."""

    def __init__(self, session: Session):
        self.session = session

    def root_ids(self) -> List[int]:
        """Returns the ids of every node without a parent."""
        rows = (
            self.session.query(models.Node.id)
            .filter(models.Node.parent_id.is_(None))
            .order_by(models.Node.id)
            .all()
        )
        return [row.id for row in rows]

    def node_ids(self) -> List[int]:
        return [row.id for row in self.session.query(models.Node.id).order_by(models.Node.id).all()]

    def binary_ids(self) -> List[int]:
        return [row.id for row in self.session.query(models.Binary.id).order_by(models.Binary.id).all()]

    def node(self, node_id: int) -> Tuple[str, Optional[int]]:
        """Returns (name, parent_id) of a node."""
        row = (
            self.session.query(models.Node.name, models.Node.parent_id)
            .filter(models.Node.id == node_id)
            .one_or_none()
        )
        if row is None:
            raise IntegrityError(f"Failed to find node record {node_id}")
        return row.name, row.parent_id

    def children(self, node_id: int) -> List[Tuple[int, str]]:
        rows = (
            self.session.query(models.Node.id, models.Node.name)
            .filter(models.Node.parent_id == node_id)
            .order_by(models.Node.id)
            .all()
        )
        return [(row.id, row.name) for row in rows]

    def listings(self, node_id: int) -> Iterator[ListedResource]:
        """Yields every resource listed in a node, joined to its type and thumbnails."""
        res = aliased(models.Resource)
        rtype = aliased(models.ResourceType)
        own_thumb = aliased(models.Resource)
        own_thumb_type = aliased(models.ResourceType)
        type_thumb = aliased(models.Resource)
        type_thumb_type = aliased(models.ResourceType)

        query = (
            self.session.query(
                res.id, rtype.rclass, rtype.mime,
                res.name, res.timestamp, res.description, res.rbin_id,
                res.thumb_id, own_thumb.rbin_id, own_thumb_type.mime,
                rtype.thumb_id, type_thumb.rbin_id, type_thumb_type.mime,
            )
            .select_from(models.Listing)
            .join(res, res.id == models.Listing.res_id)
            .join(rtype, rtype.id == res.rtype_id)
            .outerjoin(own_thumb, own_thumb.id == res.thumb_id)
            .outerjoin(own_thumb_type, own_thumb_type.id == own_thumb.rtype_id)
            .outerjoin(type_thumb, type_thumb.id == rtype.thumb_id)
            .outerjoin(type_thumb_type, type_thumb_type.id == type_thumb.rtype_id)
            .filter(models.Listing.node_id == node_id)
            .order_by(models.Listing.id)
        )
        for row in query:
            yield ListedResource(*row)

    def binary_payload(self, rbin_id: int) -> bytes:
        row = (
            self.session.query(models.Binary.payload)
            .filter(models.Binary.id == rbin_id)
            .one_or_none()
        )
        if row is None:
            raise IntegrityError(f"Failed to locate binary {rbin_id}")
        return row.payload
