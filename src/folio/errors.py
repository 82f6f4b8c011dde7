# folio/errors.py
from typing import Optional


class FolioError(Exception):
    """Base class for every error raised by folio."""


# --- Compile-time errors. Any of these aborts the whole run. ---

class CompileError(FolioError):
    """The tree store could not be compiled into a container."""


class RootNotFoundError(CompileError):
    """Zero or several nodes have no parent."""


class IntegrityError(CompileError):
    """The tree store references a row that does not exist."""


class RemapError(CompileError):
    """An entity has no object index in the remap table."""


class MissingThumbnailError(CompileError):
    def __init__(self, resource_id: int):
        super().__init__(f"Missing thumbnail for resource {resource_id}: "
                         "it declares none and its type has no default")
        self.resource_id = resource_id


class TimestampRangeError(CompileError):
    def __init__(self, resource_id: int, timestamp: int):
        super().__init__(f"Timestamp {timestamp} of resource {resource_id} is outside years 1 to 9999")
        self.resource_id = resource_id


class TrailDepthError(CompileError):
    def __init__(self, node_id: int, max_depth: int):
        super().__init__(f"Cycle or excessive depth while building the trail of node {node_id} "
                         f"(limit {max_depth})")
        self.node_id = node_id
        self.max_depth = max_depth


# --- Consumer-side errors. These reject one operation only. ---

class DescriptorError(FolioError):
    """A directory descriptor is malformed."""

    def __init__(self, message: str, index: Optional[int] = None):
        if index is not None:
            message = f"Object {index}: {message}"
        super().__init__(message)
        self.index = index


class ContainerError(FolioError):
    """The container file is malformed or could not be read."""


class ViewStateError(FolioError):
    """An operation was attempted in the wrong directory view state."""
