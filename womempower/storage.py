"""
Snapshot persistence for the loan DAO.

A snapshot is the JSON form of ``LoanDAO.to_dict()``. When the DAO's
sink is a RecordingSink its issuances are stored alongside, so a CLI
session can see which loans earlier executions issued.

Writes are atomic: the document goes to a temp file in the target
directory, is fsynced, then renamed over the destination with
``os.replace``. A reader sees either the old snapshot or the new one.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .exceptions import StorageError
from .governance.dao import LoanDAO
from .governance.execution import ExecutionSink, IssuanceRecord, RecordingSink
from .governance.voting import BalanceOracle
from .logger import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


def _fsync_dir(dir_path: Path) -> None:
    # Not every platform lets a directory be opened for fsync
    try:
        fd = os.open(str(dir_path), os.O_DIRECTORY)
    except (AttributeError, OSError):
        return
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        os.replace(str(tmp_path), str(path))
        _fsync_dir(path.parent)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def snapshot_document(dao: LoanDAO) -> Dict[str, Any]:
    """The dict written by ``save_snapshot``."""
    doc = dao.to_dict()
    sink = dao.engine.sink
    if isinstance(sink, RecordingSink):
        doc["issuances"] = [r.to_dict() for r in sink.issuances]
    return doc


def save_snapshot(dao: LoanDAO, path: PathLike) -> Path:
    """Atomically write *dao* to *path*; returns the resolved path."""
    path = Path(path)
    doc = snapshot_document(dao)
    data = json.dumps(doc, ensure_ascii=False, sort_keys=True, indent=2).encode("utf-8")
    try:
        atomic_write_bytes(path, data)
    except OSError as e:
        raise StorageError(f"Could not write snapshot {path}: {e}") from e

    logger.debug(f"Snapshot written to {path} ({len(doc['journal'])} events)")
    return path


def load_snapshot(
    path: PathLike,
    oracle: BalanceOracle,
    sink: Optional[ExecutionSink] = None,
) -> LoanDAO:
    """
    Read a snapshot written by ``save_snapshot``.

    With no *sink* given, a RecordingSink is restored holding the stored
    issuances. Raises StorageError if the file is missing, is not a JSON
    object, or fails journal verification.
    """
    path = Path(path)
    if not path.exists():
        raise StorageError(f"Snapshot not found: {path}")

    try:
        doc = json.loads(path.read_bytes().decode("utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StorageError(f"Could not read snapshot {path}: {e}") from e
    if not isinstance(doc, dict):
        raise StorageError(f"Snapshot {path} is not a JSON object")

    if sink is None:
        try:
            issued = [IssuanceRecord.from_dict(raw) for raw in doc.get("issuances", [])]
        except (KeyError, TypeError) as e:
            raise StorageError(f"Malformed issuance records in {path}: {e}") from e
        sink = RecordingSink(issued)

    return LoanDAO.from_dict(doc, oracle=oracle, sink=sink)
