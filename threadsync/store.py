"""Issue identifier → Slack thread mapping table, persisted as one TOML document.

Every call re-reads the whole file and ``set`` rewrites it in full, so other
processes sharing the file see each other's writes. There is no locking: two
concurrent ``set`` calls race and the last writer wins. The table is a flat
mapping, so a lost update never corrupts it.

``set`` never rewrites the table from a failed read: an unreadable file aborts
the write, and an unparsable one is moved aside before a fresh table replaces it.
"""

import logging
import os
import tempfile
import time
from collections.abc import Mapping
from pathlib import Path

import tomlkit
from tomlkit.exceptions import TOMLKitError

from threadsync.models import ThreadAnchor

logger = logging.getLogger(__name__)


class MappingStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def _read(self) -> tomlkit.TOMLDocument:
        if not self.path.exists():
            return tomlkit.document()
        return tomlkit.parse(self.path.read_text(encoding="utf-8"))

    def _load(self) -> tomlkit.TOMLDocument:
        """Read the table, degrading to an empty document on any failure."""
        try:
            return self._read()
        except (OSError, UnicodeDecodeError, TOMLKitError) as exc:
            logger.warning("Mapping table %s unreadable, treating as empty: %s", self.path, exc)
            return tomlkit.document()

    def _quarantine(self) -> None:
        corrupt = self.path.with_name(f"{self.path.name}.corrupt-{time.time_ns()}")
        self.path.replace(corrupt)
        logger.warning("Mapping table %s is corrupt; moved it to %s", self.path, corrupt)

    def _write(self, doc: tomlkit.TOMLDocument) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(tomlkit.dumps(doc))
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @staticmethod
    def _anchor(value: object) -> ThreadAnchor | None:
        if not isinstance(value, Mapping):
            return None
        channel_id = value.get("channel_id")
        thread_ts = value.get("thread_ts")
        if not channel_id or not thread_ts:
            return None
        return ThreadAnchor(channel_id=str(channel_id), thread_ts=str(thread_ts))

    def get(self, identifier: str) -> ThreadAnchor | None:
        return self._anchor(self._load().get(identifier))

    def set(self, identifier: str, anchor: ThreadAnchor) -> None:
        """Replace the mapping for identifier. Failures are logged, not raised."""
        try:
            doc = self._read()
        except OSError as exc:
            logger.warning("Mapping table %s unreadable, not persisting %s: %s", self.path, identifier, exc)
            return
        except (UnicodeDecodeError, TOMLKitError):
            try:
                self._quarantine()
            except OSError as exc:
                logger.warning("Could not move corrupt mapping table %s aside: %s", self.path, exc)
                return
            doc = tomlkit.document()

        entry = tomlkit.table()
        entry["channel_id"] = anchor.channel_id
        entry["thread_ts"] = anchor.thread_ts
        doc[identifier] = entry
        try:
            self._write(doc)
        except OSError as exc:
            logger.warning("Could not persist mapping %s → %s: %s", identifier, anchor, exc)
            return
        logger.debug("Mapped %s → %s/%s", identifier, anchor.channel_id, anchor.thread_ts)

    def all(self) -> dict[str, ThreadAnchor]:
        doc = self._load()
        table: dict[str, ThreadAnchor] = {}
        for identifier, value in doc.items():
            anchor = self._anchor(value)
            if anchor is not None:
                table[identifier] = anchor
        return table
