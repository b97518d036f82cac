"""Read-only access to a registry snapshot archive."""

from __future__ import annotations

import zipfile
from pathlib import Path
from typing import IO

from reyestr.core.exceptions import ArchiveError
from reyestr.core.logging import get_logger

logger = get_logger(__name__)


class RegistryArchive:
    """Zip archive holding one XML member per registry category.

    Members are decompressed lazily; :meth:`open_member` returns a binary
    stream that is read sequentially by the parser.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        if not self.path.is_file():
            raise ArchiveError(f"archive not found: {self.path}", archive_path=str(self.path))
        try:
            self._zip = zipfile.ZipFile(self.path)
        except zipfile.BadZipFile as exc:
            raise ArchiveError(f"not a zip archive: {self.path}", archive_path=str(self.path)) from exc
        except OSError as exc:
            raise ArchiveError(f"cannot open archive {self.path}: {exc}", archive_path=str(self.path)) from exc

    def __enter__(self) -> RegistryArchive:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def members(self) -> list[str]:
        return [info.filename for info in self._zip.infolist() if not info.is_dir()]

    def find_member(self, name: str) -> str | None:
        """Resolve ``name`` to a member path: exact match first, then by basename.

        Snapshots are sometimes packed with a leading directory, so
        ``UO_FULL_out.xml`` also matches ``20240101/UO_FULL_out.xml``.
        """

        members = self.members()
        if name in members:
            return name
        wanted = name.lower()
        for member in members:
            if Path(member).name.lower() == wanted:
                return member
        return None

    def open_member(self, name: str) -> IO[bytes]:
        member = self.find_member(name)
        if member is None:
            raise ArchiveError(
                f"member {name} not found in {self.path}",
                archive_path=str(self.path),
                details={"member": name},
            )
        logger.debug(f"Opening archive member {member}")
        return self._zip.open(member)


def resolve_archive_path(path: str | Path | None, data_dir: str | Path | None = None) -> Path:
    """Return ``path`` or, when absent, the newest ``*.zip`` inside ``data_dir``."""

    if path is not None:
        return Path(path).expanduser()
    if data_dir is None:
        raise ArchiveError("no archive given and no data directory configured (REYESTR_DATA_DIR)")

    directory = Path(data_dir).expanduser()
    if not directory.is_dir():
        raise ArchiveError(f"data directory not found: {directory}")
    candidates = sorted(directory.glob("*.zip"), key=lambda item: (item.stat().st_mtime, item.name))
    if not candidates:
        raise ArchiveError(f"no .zip archives in {directory}")
    chosen = candidates[-1]
    logger.info(f"Using newest archive {chosen}")
    return chosen


__all__ = ["RegistryArchive", "resolve_archive_path"]
