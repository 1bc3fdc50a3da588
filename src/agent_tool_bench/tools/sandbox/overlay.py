"""Copy-on-write view of a real directory for the shell sandbox.

The real directory appears at a virtual mount point (``/workspace`` by
default).  Reads fall through to disk; writes land in an in-memory layer
and shadow the real file of the same name.  Nothing is ever written to
disk, and virtual paths outside the mount do not exist.

The in-memory layer is guarded by a lock: a command abandoned after a
timeout may still be writing while the next command reads.
"""

from __future__ import annotations

import fnmatch
import os
import posixpath
import threading
from collections.abc import Iterator

DEFAULT_MOUNT_POINT = "/workspace"


def has_magic(text: str) -> bool:
    return any(ch in text for ch in "*?[")


class OverlayFs:
    """Virtual filesystem rooted at *root*, mounted at *mount_point*."""

    def __init__(self, root: str | os.PathLike[str], mount_point: str = DEFAULT_MOUNT_POINT) -> None:
        self._root = os.path.normpath(os.path.abspath(root))
        self._mount = posixpath.normpath("/" + mount_point.strip("/"))
        self._files: dict[str, str] = {}
        self._lock = threading.RLock()

    @property
    def mount_point(self) -> str:
        return self._mount

    @property
    def written(self) -> dict[str, str]:
        """Files created by redirections, keyed by virtual path."""
        with self._lock:
            return dict(self._files)

    def _written_text(self, vpath: str) -> str | None:
        with self._lock:
            return self._files.get(vpath)

    # -- path handling --------------------------------------------------------

    def resolve(self, path: str, cwd: str) -> str:
        """Absolute, normalized virtual path for *path* seen from *cwd*."""
        joined = path if path.startswith("/") else posixpath.join(cwd, path)
        normalized = posixpath.normpath(joined)
        # normpath keeps a leading "//"; collapse it.
        return "/" + normalized.lstrip("/")

    def _in_mount(self, vpath: str) -> bool:
        return vpath == self._mount or vpath.startswith(self._mount + "/")

    def _is_mount_ancestor(self, vpath: str) -> bool:
        if vpath == "/":
            return True
        return self._mount.startswith(vpath.rstrip("/") + "/")

    def _real(self, vpath: str) -> str | None:
        if not self._in_mount(vpath):
            return None
        rel = vpath[len(self._mount):].lstrip("/")
        return os.path.join(self._root, *rel.split("/")) if rel else self._root

    # -- queries --------------------------------------------------------------

    def is_dir(self, vpath: str) -> bool:
        if self._is_mount_ancestor(vpath):
            return True
        real = self._real(vpath)
        return real is not None and os.path.isdir(real)

    def is_file(self, vpath: str) -> bool:
        if self._written_text(vpath) is not None:
            return True
        real = self._real(vpath)
        return real is not None and os.path.isfile(real)

    def exists(self, vpath: str) -> bool:
        return self.is_file(vpath) or self.is_dir(vpath)

    def size(self, vpath: str) -> int:
        written = self._written_text(vpath)
        if written is not None:
            return len(written.encode("utf-8"))
        real = self._real(vpath)
        if real is None or not os.path.exists(real):
            raise FileNotFoundError(vpath)
        return os.path.getsize(real)

    def listdir(self, vpath: str) -> list[str]:
        """Sorted entry names of the directory *vpath*."""
        if self._is_mount_ancestor(vpath) and vpath != self._mount:
            rest = self._mount[len(vpath.rstrip("/")) + 1:]
            return [rest.split("/")[0]]
        real = self._real(vpath)
        if real is None or not os.path.isdir(real):
            if self.is_file(vpath):
                raise NotADirectoryError(vpath)
            raise FileNotFoundError(vpath)
        names = set(os.listdir(real))
        prefix = vpath.rstrip("/") + "/"
        for written in self.written:
            if written.startswith(prefix) and "/" not in written[len(prefix):]:
                names.add(written[len(prefix):])
        return sorted(names)

    def walk(self, vpath: str) -> Iterator[tuple[str, list[str], list[str]]]:
        """Top-down ``(dirpath, dirnames, filenames)`` like ``os.walk``."""
        try:
            names = self.listdir(vpath)
        except OSError:
            return
        dirs: list[str] = []
        files: list[str] = []
        for name in names:
            child = posixpath.join(vpath, name)
            (dirs if self.is_dir(child) else files).append(name)
        yield vpath, dirs, files
        for name in dirs:
            yield from self.walk(posixpath.join(vpath, name))

    def glob(self, pattern: str, cwd: str) -> list[str]:
        """Expand a shell glob; results keep the pattern's relative form.

        Hidden entries match only when the pattern component starts with
        ``.``.  No match returns an empty list.
        """
        absolute = pattern.startswith("/")
        parts = [p for p in pattern.split("/") if p]
        candidates: list[tuple[str, str]] = [("/" if absolute else "", "/" if absolute else cwd)]
        for part in parts:
            matched: list[tuple[str, str]] = []
            for shown, vdir in candidates:
                if not has_magic(part):
                    matched.append((posixpath.join(shown, part) if shown else part,
                                    self.resolve(part, vdir)))
                    continue
                if not self.is_dir(vdir):
                    continue
                for name in self.listdir(vdir):
                    if name.startswith(".") and not part.startswith("."):
                        continue
                    if fnmatch.fnmatchcase(name, part):
                        matched.append((posixpath.join(shown, name) if shown else name,
                                        posixpath.join(vdir, name)))
            candidates = matched
        if pattern.endswith("/"):
            return sorted(shown + "/" for shown, vpath in candidates if self.is_dir(vpath))
        return sorted(shown for shown, vpath in candidates if self.exists(vpath))

    # -- content --------------------------------------------------------------

    def read_text(self, vpath: str) -> str:
        written = self._written_text(vpath)
        if written is not None:
            return written
        if self.is_dir(vpath):
            raise IsADirectoryError(vpath)
        real = self._real(vpath)
        if real is None or not os.path.isfile(real):
            raise FileNotFoundError(vpath)
        with open(real, encoding="utf-8", errors="replace") as fh:
            return fh.read()

    def write_text(self, vpath: str, data: str, append: bool = False) -> None:
        """Write to the in-memory layer; the parent directory must exist."""
        if self.is_dir(vpath):
            raise IsADirectoryError(vpath)
        if not self._in_mount(vpath):
            raise PermissionError(vpath)
        if not self.is_dir(posixpath.dirname(vpath)):
            raise FileNotFoundError(vpath)
        with self._lock:
            if append and self.is_file(vpath):
                data = self.read_text(vpath) + data
            self._files[vpath] = data
