"""
세레모니 산출물 저장소
=======================

누산기, 증명키, 내보내기 결과를 TinyDB 문서 저장소에 보관한다.

  | 테이블       | 키                    | 값                      |
  |--------------|-----------------------|-------------------------|
  | accumulator  | ceremony              | 직렬화된 Accumulator     |
  | keyset       | ceremony              | 직렬화된 ProvingKeySet   |
  | artifacts    | ceremony, type        | 임의의 JSON 값           |

**쓰기 규칙**:
  - 같은 파일을 여는 저장소는 프로세스 안에서 하나의 lock 을 공유하고,
    그 lock 안에서 버전 확인과 쓰기를 한 번에 한다.
  - 한 파일에 쓰는 프로세스는 하나여야 한다. 프로세스 사이에는 lock 이
    없으므로, 겹치지 않는 쓰기만 StaleBase 로 걸러진다.
  - 저장 직전에 저장된 (transcript_hash, phase) 가 호출자가 읽었던 값과
    같은지 확인한다 (낙관적 동시성). 다르면 StaleBase.
  - 파일 저장은 임시 파일 + os.replace 로 원자적이다. 중간에 실패해도
    이전 내용이 그대로 남는다.

path 를 주지 않으면 MemoryStorage 를 쓴다.
"""

import json
import logging
import os
import tempfile
import threading

from tinydb import Query, TinyDB
from tinydb.storages import MemoryStorage, Storage

from zkpipe.errors import StaleBase
from zkpipe.serializers import (
    deserialize_accumulator,
    deserialize_key_set,
    serialize_accumulator,
    serialize_key_set,
)

logger = logging.getLogger(__name__)

Row = Query()

_path_locks = {}
_path_locks_guard = threading.Lock()


def _lock_for(path):
    """파일 경로마다 하나의 lock. 메모리 저장소는 각자 lock 을 갖는다."""
    if path is None:
        return threading.Lock()
    with _path_locks_guard:
        return _path_locks.setdefault(os.path.abspath(path), threading.Lock())


class AtomicJSONStorage(Storage):
    """JSON 파일 저장소. 쓰기는 임시 파일을 거쳐 원자적으로 교체된다."""

    def __init__(self, path, create_dirs=False, **kwargs):
        self._path = os.path.abspath(path)
        self._kwargs = kwargs
        if create_dirs:
            os.makedirs(os.path.dirname(self._path), exist_ok=True)

    def read(self):
        try:
            with open(self._path, encoding="utf-8") as f:
                content = f.read()
        except FileNotFoundError:
            return None
        if not content:
            return None
        return json.loads(content)

    def write(self, data):
        fd, tmp = tempfile.mkstemp(dir=os.path.dirname(self._path),
                                   prefix=".zkpipe-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, **self._kwargs)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def close(self):
        pass


def _version(value):
    """저장된 직렬화 문서의 (transcript_hash, phase) 버전 문자열."""
    if value is None:
        return None
    phase = value.get("phase")
    if phase is None:
        phase = "finalized" if value.get("finalized") else "open"
    return f"{value['transcript_hash']}@{phase}"


def accumulator_version(acc):
    return None if acc is None else f"{acc.transcript_hash}@{acc.phase.value}"


def key_set_version(key_set):
    if key_set is None:
        return None
    return f"{key_set.transcript_hash}@{'finalized' if key_set.finalized else 'open'}"


class ArtifactStore:
    """세레모니 이름으로 구분되는 TinyDB 산출물 저장소."""

    def __init__(self, path=None):
        if path is None:
            self.db = TinyDB(storage=MemoryStorage)
        else:
            self.db = TinyDB(path, storage=AtomicJSONStorage, create_dirs=True)
        self.path = path
        self.accumulators = self.db.table("accumulator")
        self.key_sets = self.db.table("keyset")
        self.artifacts = self.db.table("artifacts")
        self._lock = _lock_for(path)

    def _get(self, table, ceremony):
        row = table.get(Row.ceremony == ceremony)
        return None if row is None else row["value"]

    def _put(self, table, ceremony, value, expected):
        with self._lock:
            actual = _version(self._get(table, ceremony))
            if actual != expected:
                raise StaleBase(expected, actual)
            table.upsert({"ceremony": ceremony, "value": value}, Row.ceremony == ceremony)
        logger.debug(f"stored {table.name} for ceremony {ceremony!r}: {_version(value)}")

    # ── accumulator ──

    def load_accumulator(self, ceremony):
        value = self._get(self.accumulators, ceremony)
        return None if value is None else deserialize_accumulator(value)

    def save_accumulator(self, ceremony, acc, expected=None):
        """expected: 호출자가 읽었던 누산기의 버전 (없으면 None)."""
        self._put(self.accumulators, ceremony, serialize_accumulator(acc), expected)

    # ── proving key ──

    def load_key_set(self, ceremony):
        value = self._get(self.key_sets, ceremony)
        return None if value is None else deserialize_key_set(value)

    def save_key_set(self, ceremony, key_set, expected=None):
        self._put(self.key_sets, ceremony, serialize_key_set(key_set), expected)

    # ── export artifacts ──

    def save_artifact(self, ceremony, type_name, value):
        with self._lock:
            self.artifacts.upsert(
                {"ceremony": ceremony, "type": type_name, "value": value},
                (Row.ceremony == ceremony) & (Row.type == type_name),
            )

    def load_artifact(self, ceremony, type_name):
        row = self.artifacts.get((Row.ceremony == ceremony) & (Row.type == type_name))
        return None if row is None else row["value"]

    def discard(self, ceremony):
        with self._lock:
            for table in (self.accumulators, self.key_sets, self.artifacts):
                table.remove(Row.ceremony == ceremony)
        logger.info(f"discarded ceremony {ceremony!r}")

    def ceremonies(self):
        return sorted({row["ceremony"] for row in self.accumulators.all()})

    def close(self):
        self.db.close()
