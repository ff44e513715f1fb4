"""
Output Writer
Purges the output root and writes metadata records as pretty-printed JSON.
"""

import json
import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any, Sequence, Set, Union

from loguru import logger

from ..errors import OutputWriteError
from ..metadata.models import TableRecord

EXTENSION = ".json"
WAREHOUSES_FILE = f"warehouses{EXTENSION}"
DATABASES_FILE = f"databases{EXTENSION}"
DATABASE_METADATA_FILE = f"metadata{EXTENSION}"

_UNSAFE_CHARS = {'%': '%25', '/': '%2f', '\\': '%5c', '\x00': '%00'}


def safe_name(name: str) -> str:
    """
    Lowercase an identifier and make it usable as one path component.

    Quoted Snowflake identifiers may contain path separators or start with
    dots, so those are percent-encoded.
    """
    encoded = ''.join(_UNSAFE_CHARS.get(ch, ch) for ch in name.lower())
    if encoded.startswith('.'):
        encoded = '%2e' + encoded[1:]
    return encoded or '%00'


def database_dir(database: str) -> str:
    return safe_name(database)


def database_metadata_path(database: str) -> str:
    return f"{database_dir(database)}/{DATABASE_METADATA_FILE}"


def table_path(table: TableRecord) -> str:
    """``<database>/<schema>.<table>.json``, all lowercase."""
    return f"{database_dir(table.database)}/{safe_name(table.schema)}.{safe_name(table.name)}{EXTENSION}"


def _to_jsonable(record: Any) -> Any:
    if hasattr(record, 'to_dict'):
        return record.to_dict()
    if isinstance(record, (list, tuple)):
        return [_to_jsonable(item) for item in record]
    return record


class OutputWriter:
    """Writes the harvest tree under a single output root."""

    def __init__(self, root: Union[str, Path]):
        """
        Initialize output writer.

        Args:
            root: Output root directory
        """
        self.root = Path(root)
        self._dir_lock = threading.Lock()
        self._written: Set[Path] = set()

    def purge(self) -> None:
        """Remove any previous output tree and recreate an empty root."""
        try:
            shutil.rmtree(self.root)
            logger.debug(f"Purged output directory {self.root}")
        except FileNotFoundError:
            pass
        self.root.mkdir(parents=True, exist_ok=True)
        with self._dir_lock:
            self._written.clear()

    def _ensure_dir(self, directory: Path) -> None:
        with self._dir_lock:
            directory.mkdir(parents=True, exist_ok=True)

    def _resolve(self, relative_path: str) -> Path:
        full_path = self.root.joinpath(*relative_path.split('/'))
        root = self.root.resolve()
        if root not in full_path.resolve().parents:
            logger.error(f"Refusing to write {relative_path} outside output root {root}")
            raise OutputWriteError(str(full_path), ValueError("path escapes the output root"))
        return full_path

    def _claim(self, full_path: Path) -> None:
        with self._dir_lock:
            if full_path in self._written:
                logger.warning(f"Overwriting {full_path}, written earlier in this run")
            self._written.add(full_path)

    def write(self, relative_path: str, record: Any) -> Path:
        """
        Write one record as JSON.

        The file is written in full to a temporary sibling and moved into
        place, so readers never see a partial document.

        Args:
            relative_path: Path under the output root, '/' separated
            record: A record, a sequence of records, or plain JSON data

        Returns:
            Full path of the written file

        Raises:
            OutputWriteError: if serialization or the write fails
        """
        full_path = self._resolve(relative_path)

        try:
            self._ensure_dir(full_path.parent)
            self._claim(full_path)
            payload = json.dumps(_to_jsonable(record), indent=2)
            fd, tmp_name = tempfile.mkstemp(dir=full_path.parent, prefix=f".{full_path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(payload)
                os.replace(tmp_name, full_path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write output {full_path}: {str(e)}")
            raise OutputWriteError(str(full_path), e) from e

        logger.debug(f"Written output to {full_path}")
        return full_path

    def write_warehouses(self, warehouses: Sequence[Any]) -> Path:
        return self.write(WAREHOUSES_FILE, warehouses)

    def write_databases(self, databases: Sequence[Any]) -> Path:
        return self.write(DATABASES_FILE, databases)

    def write_database_metadata(self, database: str, summary: Any) -> Path:
        return self.write(database_metadata_path(database), summary)

    def write_table(self, table: TableRecord) -> Path:
        return self.write(table_path(table), table)
