# folio/models.py
import attrs
from sqlalchemy import BigInteger, Column, ForeignKey, Integer, LargeBinary, String, UniqueConstraint
from sqlalchemy.orm import declarative_base

# --- Attrs classes for decoded directory descriptors ---
@attrs.define(slots=True, frozen=True)
class NodeRef:
    """A trail or folder entry: the object index of a node and its name."""
    index: int
    name: str


@attrs.define(slots=True, frozen=True)
class FileEntry:
    """One validated file record of a directory descriptor."""
    rclass: str
    rbin: int
    rmime: str
    tbin: int
    tmime: str
    rname: str
    rtime: str
    desc: str = ""


# --- SQLAlchemy ORM classes for the tree store ---
Base = declarative_base()

class Node(Base):
    __tablename__ = 'node'
    __table_args__ = (UniqueConstraint('parent_id', 'name'),)

    id = Column(Integer, primary_key=True)
    parent_id = Column(Integer, nullable=True, index=True)    # NULL only for the root
    name = Column(String, nullable=False)


class ResourceType(Base):
    __tablename__ = 'rtype'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, unique=True)
    rclass = Column(String, nullable=False)                   # image, video, audio or text
    mime = Column(String, nullable=False)
    thumb_id = Column(Integer, nullable=True)                 # Default thumbnail, a res.id


class Binary(Base):
    __tablename__ = 'rbin'

    id = Column(Integer, primary_key=True)
    payload = Column(LargeBinary, nullable=False)


class Resource(Base):
    __tablename__ = 'res'

    id = Column(Integer, primary_key=True)
    rtype_id = Column(Integer, ForeignKey('rtype.id'), nullable=False)
    name = Column(String, nullable=False)
    timestamp = Column(BigInteger, nullable=False)            # Seconds since the epoch
    description = Column(String, nullable=True)
    thumb_id = Column(Integer, ForeignKey('res.id'), nullable=True)
    rbin_id = Column(Integer, ForeignKey('rbin.id'), nullable=False)


class Listing(Base):
    __tablename__ = 'list'
    __table_args__ = (UniqueConstraint('node_id', 'res_id'),)

    id = Column(Integer, primary_key=True)
    node_id = Column(Integer, ForeignKey('node.id'), nullable=False, index=True)
    res_id = Column(Integer, ForeignKey('res.id'), nullable=False)
