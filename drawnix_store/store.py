from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from .config import DOCUMENT_SUFFIX, DEFAULT_LIST_MAX_DEPTH
from .errors import ListFailed, MissingField, NotFound, ReadFailed, WriteFailed
from .security import safe_join


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredDocument:
    name: str
    relative_path: str
    dir: str
    size: int
    mtime: float  # milliseconds since epoch


@dataclass(frozen=True)
class WriteResult:
    path: str
    size: int


@dataclass(frozen=True)
class DocumentContent:
    name: str
    relative_path: str
    content: str


def _basename(name: str) -> str:
    # Directory components in the supplied name are discarded, whichever
    # separator the client used.
    return name.replace("\\", "/").rsplit("/", 1)[-1]


class DocumentStore:
    """Stored `.drawnix` documents under a single root directory.

    Every path built from request input goes through safe_join() before it
    touches the filesystem. There is no locking: concurrent writers to the
    same path race and the last one to finish wins.
    """

    def __init__(
        self,
        root: Path,
        suffix: str = DOCUMENT_SUFFIX,
        max_depth: int = DEFAULT_LIST_MAX_DEPTH,
    ) -> None:
        self.root = Path(root).resolve()
        self.suffix = suffix
        self.max_depth = max_depth

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def write(self, filename: str, content: str, directory: str | None = None) -> WriteResult:
        """Store content as <root>/<directory>/<basename(filename)>, replacing any existing file."""
        if not filename:
            raise MissingField("filename required")
        safe_name = _basename(filename)
        if not safe_name:
            raise MissingField("filename required")

        target = safe_join(self.root, directory or "", safe_name)
        data = (content or "").encode("utf-8")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # Not atomic: a crash mid-write leaves a truncated file.
            target.write_bytes(data)
        except OSError:
            logger.exception("Write error for %s", target)
            raise WriteFailed() from None

        logger.info("Stored %s (%d bytes)", self._relative(target), len(data))
        return WriteResult(path=self._relative(target), size=len(data))

    def list_documents(self) -> list[StoredDocument]:
        """Return every stored document below the root, in traversal order."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            documents: list[StoredDocument] = []
            self._walk(self.root, 0, set(), documents)
        except OSError:
            logger.exception("List error under %s", self.root)
            raise ListFailed() from None
        return documents

    def _walk(self, directory: Path, depth: int, seen: set[tuple[int, int]], out: list[StoredDocument]) -> None:
        st = directory.stat()
        key = (st.st_dev, st.st_ino)
        if key in seen:
            return
        seen.add(key)

        with os.scandir(directory) as entries:
            for entry in entries:
                # Symlinks are neither followed nor listed.
                if entry.is_dir(follow_symlinks=False):
                    if depth + 1 > self.max_depth:
                        logger.warning("Not descending into %s: depth limit %d", entry.path, self.max_depth)
                        continue
                    self._walk(Path(entry.path), depth + 1, seen, out)
                elif entry.is_file(follow_symlinks=False) and entry.name.endswith(self.suffix):
                    entry_stat = entry.stat(follow_symlinks=False)
                    rel = PurePosixPath(self._relative(Path(entry.path)))
                    parent = rel.parent.as_posix()
                    out.append(
                        StoredDocument(
                            name=entry.name,
                            relative_path=rel.as_posix(),
                            dir="" if parent == "." else parent,
                            size=entry_stat.st_size,
                            mtime=entry_stat.st_mtime_ns / 1_000_000,
                        )
                    )

    def read(self, relative_path: str) -> DocumentContent:
        rel = (relative_path or "").lstrip("/")
        if not rel:
            raise MissingField("path required")

        target = safe_join(self.root, rel)
        try:
            data = target.read_bytes()
        except OSError as e:
            logger.warning("Read error for %s: %s", rel, e)
            raise NotFound() from None
        try:
            content = data.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Stored file %s is not valid UTF-8", rel)
            raise ReadFailed() from None

        return DocumentContent(name=target.name, relative_path=rel, content=content)
