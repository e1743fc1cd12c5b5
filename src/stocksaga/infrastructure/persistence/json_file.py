"""Shared plumbing for the JSON-file-backed repositories.

Every read-modify-write cycle runs under two locks owned by the file
path: a thread lock shared by repository instances in this process, and
a ``filelock`` lock on a sidecar ``.lock`` file shared with every other
process using the same data directory.  Writes go to a uniquely named
temp file in the same directory that then replaces the original.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from filelock import FileLock, Timeout

from stocksaga.domain.exceptions import StorageUnavailableError

LOCK_TIMEOUT_SECONDS = 30.0

_locks: dict[Path, tuple[threading.RLock, FileLock]] = {}
_locks_guard = threading.Lock()


def _locks_for(path: Path) -> tuple[threading.RLock, FileLock]:
    with _locks_guard:
        if path not in _locks:
            # only ever acquired under the thread lock, one FileLock per path
            _locks[path] = (
                threading.RLock(),
                FileLock(str(path) + ".lock", timeout=LOCK_TIMEOUT_SECONDS, thread_local=False),
            )
        return _locks[path]


class JsonFileRepository:

    def __init__(self, file_path: Path) -> None:
        self._file_path = Path(file_path).resolve()
        self._thread_lock, self._file_lock = _locks_for(self._file_path)
        self._ensure_file()

    # --- File helpers ---------------------------------------------------------

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._thread_lock:
            try:
                self._file_lock.acquire()
            except Timeout as exc:
                raise StorageUnavailableError(
                    f"Timed out waiting for the lock on {self._file_path.name}"
                ) from exc
            except OSError as exc:
                raise StorageUnavailableError(
                    f"Cannot lock {self._file_path.name}: {exc}"
                ) from exc
            try:
                yield
            finally:
                self._file_lock.release()

    def _load_raw(self) -> list[dict]:
        try:
            return json.loads(self._file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageUnavailableError(
                f"Cannot read {self._file_path.name}: {exc}"
            ) from exc

    def _persist_raw(self, records: list[dict]) -> None:
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._file_path.parent,
                prefix=self._file_path.name + ".",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(json.dumps(records, indent=2) + "\n")
            os.replace(tmp_name, self._file_path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageUnavailableError(
                f"Cannot write {self._file_path.name}: {exc}"
            ) from exc

    def _ensure_file(self) -> None:
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(
                f"Cannot create data directory {self._file_path.parent}: {exc}"
            ) from exc
        with self._locked():
            if not self._file_path.exists():
                self._persist_raw([])
