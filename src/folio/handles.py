# folio/handles.py
import logging
import mimetypes
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

import attrs


@attrs.define(slots=True, frozen=True)
class LocalHandle:
    """A locally resolvable reference to one fetched binary object."""
    index: int
    mime: str
    path: Path

    @property
    def uri(self) -> str:
        return self.path.as_uri()


class HandleFactory(Protocol):
    def create(self, index: int, data: bytes, mime: str) -> LocalHandle: ...

    def release(self, handle: LocalHandle) -> None: ...


class TempFileHandles:
    """
    Creates handles by writing each payload to its own file in a private
    temporary directory. The file outlives every Python reference to the
    bytes, so each handle must be released explicitly.
    """

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        self.directory = Path(tempfile.mkdtemp(prefix="folio-", dir=directory))
        self._live: Dict[Path, LocalHandle] = {}
        self._serial = 0

    def create(self, index: int, data: bytes, mime: str) -> LocalHandle:
        self._serial += 1
        suffix = mimetypes.guess_extension(mime) or ".bin"
        path = self.directory / f"obj-{index}-{self._serial}{suffix}"
        path.write_bytes(data)
        handle = LocalHandle(index=index, mime=mime, path=path)
        self._live[path] = handle
        return handle

    def release(self, handle: LocalHandle) -> None:
        if self._live.pop(handle.path, None) is None:
            logging.warning(f"Released unknown or already released handle for object {handle.index}")
            return
        handle.path.unlink(missing_ok=True)

    def live_count(self) -> int:
        return len(self._live)

    def shutdown(self) -> None:
        """Releases anything still live and removes the directory."""
        for handle in list(self._live.values()):
            self.release(handle)
        shutil.rmtree(self.directory, ignore_errors=True)
