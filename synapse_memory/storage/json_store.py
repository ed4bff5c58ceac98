"""
JSON file persistence for Synapse Memory System
Copyright 2025 Jurden Bruce

One file per store, always holding the store's full snapshot. Writes go to a
temporary file in the same directory and are moved into place with
``os.replace`` so a reader never sees a half-written file.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import StorageCorruption, StorageWriteError
from ..utils import log_error

logger = logging.getLogger("synapse-memory.json-store")

FileSignature = Optional[Tuple[int, int]]


class JsonFileStore:
    """Durable load/save of one store's snapshot"""

    def __init__(self, path: Path, empty_factory: Callable[[], Any], error_log: Optional[List[Dict[str, Any]]] = None):
        """
        Args:
            path: Backing JSON file (created on first save)
            empty_factory: Returns the raw JSON value of an empty store
            error_log: Shared error log list
        """
        self.path = Path(path)
        self.empty_factory = empty_factory
        self.error_log = error_log if error_log is not None else []
        self._signature: FileSignature = None

    def _stat_signature(self) -> FileSignature:
        try:
            st = self.path.stat()
        except FileNotFoundError:
            return None
        return (st.st_mtime_ns, st.st_size)

    def has_changed(self) -> bool:
        """True when the file on disk differs from what was last loaded or saved"""
        return self._stat_signature() != self._signature

    def load(self, parser: Callable[[Any], Any]) -> Any:
        """Read and parse the file.

        A missing file parses as an empty store.

        Raises:
            StorageCorruption: unreadable file, invalid JSON, or a shape the
                parser rejects
        """
        self._signature = self._stat_signature()
        if self._signature is None:
            return parser(self.empty_factory())

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StorageCorruption(self.path, str(e)) from e

        try:
            return parser(raw)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StorageCorruption(self.path, f"unexpected structure: {e!r}") from e

    def load_or_empty(self, parser: Callable[[Any], Any]) -> Any:
        """Load the file, degrading to an empty store on corruption"""
        try:
            return self.load(parser)
        except StorageCorruption as e:
            logger.error(f"{e} - starting with an empty store")
            log_error(self.error_log, f"load:{self.path.name}", e)
            return parser(self.empty_factory())

    def save(self, data: Any):
        """Atomically replace the file with *data*

        Raises:
            StorageWriteError: the snapshot could not be serialized or written
        """
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(data, indent=2, ensure_ascii=False)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Write failed for {self.path}: {e}")
            log_error(self.error_log, f"save:{self.path.name}", e)
            raise StorageWriteError(self.path, str(e)) from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning(f"Could not remove temp file {tmp_name}")

        self._signature = self._stat_signature()
