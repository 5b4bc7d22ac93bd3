"""Content-addressed scrollo cache.

Each distinct text gets one file named after the CRC-32 of its UTF-8
bytes.  The first delivery of a text writes the file; later deliveries
with the same checksum leave it alone.  A well-known display path is a
hard link to whichever entry was requested last.
"""

from __future__ import annotations

import logging
import os
import tempfile
import uuid
import zlib
from pathlib import Path

from rewardhook.errors import CacheCreateError, CacheLinkError, CacheWriteError

logger = logging.getLogger(__name__)

# Longest text prefix rendered into an entry, in characters
MAX_TEXT_CHARS: int = 256

SPARKLES = "✨✨✨"


def checksum(text: str) -> int:
    """Return the unsigned CRC-32 (IEEE) of *text* encoded as UTF-8."""
    return zlib.crc32(text.encode("utf-8")) & 0xFFFFFFFF


def cache_key(text: str) -> str:
    """Return the cache file name for *text*: its checksum in decimal."""
    return str(checksum(text))


def render(text: str) -> str:
    """Decorate a (truncated) text for display."""
    return f" {text[:MAX_TEXT_CHARS]} {SPARKLES} "


class ScrolloCache:
    """Write-once cache of rendered scrollo texts plus a display link.

    Parameters
    ----------
    cache_dir:
        Directory holding one file per distinct checksum.
    link_path:
        Well-known path re-linked to the most recently requested entry.
    """

    def __init__(self, cache_dir: Path | str, link_path: Path | str) -> None:
        self._cache_dir = Path(cache_dir)
        self._link_path = Path(link_path)

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    @property
    def link_path(self) -> Path:
        return self._link_path

    def entry_path(self, text: str) -> Path:
        return self._cache_dir / cache_key(text)

    def ensure_and_link(self, text: str) -> Path:
        """Make sure *text* has a cache entry and point the display link at it.

        Returns the entry path.

        Raises:
            CacheCreateError: if the entry cannot be created.
            CacheWriteError: if the entry's content cannot be written.
            CacheLinkError: if the display link cannot be replaced.
        """
        entry = self.entry_path(text)
        if self._create_exclusive(entry, render(text)):
            logger.info("Created scrollo entry %s", entry.name)
        else:
            logger.debug("Scrollo entry %s already cached", entry.name)
        self._relink(entry)
        return entry

    def _create_exclusive(self, entry: Path, content: str) -> bool:
        """Publish *content* at *entry* unless something is already there.

        The content is staged in a temporary file and hard-linked into
        place, so the entry appears fully written or not at all.  Returns
        ``True`` if this call created the entry.
        """
        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", dir=self._cache_dir)
        except OSError as exc:
            raise CacheCreateError(f"failed to create file: {exc}") from exc

        try:
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(content)
            except OSError as exc:
                raise CacheWriteError(
                    f"failed to write text to scrollo file: {exc}"
                ) from exc

            try:
                os.link(tmp_name, entry)
            except FileExistsError:
                return False
            except OSError as exc:
                raise CacheCreateError(f"failed to create file: {exc}") from exc
            return True
        finally:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass

    def _relink(self, entry: Path) -> None:
        """Atomically repoint the display link at *entry*."""
        tmp_link = self._link_path.with_name(
            f".{self._link_path.name}.{uuid.uuid4().hex}"
        )
        try:
            os.link(entry, tmp_link)
            os.replace(tmp_link, self._link_path)
        except OSError as exc:
            raise CacheLinkError(f"failed to link file: {exc}") from exc
        finally:
            # rename() is a no-op when both names are already the same inode
            try:
                os.unlink(tmp_link)
            except FileNotFoundError:
                pass
