"""
ArtifactStore tests

  - 메모리 / 파일 저장소 기록과 재로딩
  - 버전 충돌 (StaleBase)
  - 원자적 파일 쓰기
"""

import json
import os
import pytest

from zkpipe.errors import StaleBase
from zkpipe.groth16.ceremony import CeremonyManager
from zkpipe.storage import (
    ArtifactStore,
    AtomicJSONStorage,
    accumulator_version,
    key_set_version,
)


class TestVersions:
    def test_accumulator_version(self, phase1_data, prepared):
        final = phase1_data["final"]
        assert accumulator_version(None) is None
        assert accumulator_version(final) == f"{final.transcript_hash}@phase1_final"
        # 준비 단계는 해시를 바꾸지 않지만 버전은 달라진다
        assert prepared.transcript_hash == final.transcript_hash
        assert accumulator_version(prepared) != accumulator_version(final)

    def test_key_set_version(self, key_data):
        contributed, final = key_data["contributed"], key_data["final"]
        assert key_set_version(contributed).endswith("@open")
        assert key_set_version(final).endswith("@finalized")
        assert key_set_version(final).split("@")[0] == key_set_version(contributed).split("@")[0]


class TestMemoryStore:
    def test_accumulator_round_trip(self, phase1_data):
        store = ArtifactStore()
        store.save_accumulator("demo", phase1_data["contributed"])
        loaded = store.load_accumulator("demo")
        assert loaded.transcript_hash == phase1_data["contributed"].transcript_hash
        assert store.ceremonies() == ["demo"]

    def test_missing(self):
        store = ArtifactStore()
        assert store.load_accumulator("nothing") is None
        assert store.load_key_set("nothing") is None
        assert store.load_artifact("nothing", "proof") is None

    def test_new_ceremony_must_not_exist(self, phase1_data):
        store = ArtifactStore()
        store.save_accumulator("demo", phase1_data["fresh"])
        with pytest.raises(StaleBase):
            store.save_accumulator("demo", phase1_data["fresh"])

    def test_stale_version(self, phase1_data):
        store = ArtifactStore()
        fresh = phase1_data["fresh"]
        store.save_accumulator("demo", fresh)
        store.save_accumulator("demo", phase1_data["contributed"],
                               expected=accumulator_version(fresh))
        with pytest.raises(StaleBase) as exc:
            store.save_accumulator("demo", phase1_data["contributed"],
                                   expected=accumulator_version(fresh))
        assert exc.value.actual == accumulator_version(phase1_data["contributed"])

    def test_phase_change_is_a_new_version(self, phase1_data):
        """같은 해시라도 단계가 다르면 충돌로 본다."""
        store = ArtifactStore()
        contributed, final = phase1_data["contributed"], phase1_data["final"]
        store.save_accumulator("demo", contributed)
        store.save_accumulator("demo", final, expected=accumulator_version(contributed))
        with pytest.raises(StaleBase):
            store.save_accumulator("demo", final, expected=accumulator_version(contributed))

    def test_ceremonies_are_independent(self, phase1_data):
        store = ArtifactStore()
        store.save_accumulator("one", phase1_data["fresh"])
        store.save_accumulator("two", phase1_data["contributed"])
        assert store.ceremonies() == ["one", "two"]
        store.discard("one")
        assert store.ceremonies() == ["two"]
        assert store.load_accumulator("two") is not None

    def test_artifacts(self):
        store = ArtifactStore()
        store.save_artifact("demo", "public", ["8"])
        store.save_artifact("demo", "public", ["9"])
        store.save_artifact("other", "public", ["1"])
        assert store.load_artifact("demo", "public") == ["9"]
        assert store.load_artifact("other", "public") == ["1"]


class TestFileStore:
    def test_reopen(self, tmp_path, key_data, prepared):
        path = str(tmp_path / "db" / "ceremony.json")
        store = ArtifactStore(path)
        store.save_accumulator("demo", prepared)
        store.save_key_set("demo", key_data["final"])
        store.close()

        reopened = ArtifactStore(path)
        acc = reopened.load_accumulator("demo")
        key_set = reopened.load_key_set("demo")
        assert acc.phase is prepared.phase
        assert acc.circuit_hash == prepared.circuit_hash
        assert key_set.finalized
        assert key_set.transcript_hash == key_data["final"].transcript_hash

    def test_plain_json(self, tmp_path, phase1_data):
        path = str(tmp_path / "ceremony.json")
        ArtifactStore(path).save_accumulator("demo", phase1_data["fresh"])
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert list(data) == ["accumulator"]

    def test_no_temp_files_left(self, tmp_path, phase1_data):
        path = str(tmp_path / "ceremony.json")
        store = ArtifactStore(path)
        store.save_accumulator("demo", phase1_data["fresh"])
        store.save_artifact("demo", "public", ["8"])
        assert sorted(os.listdir(str(tmp_path))) == ["ceremony.json"]

    def test_failed_write_keeps_old_content(self, tmp_path):
        path = str(tmp_path / "data.json")
        storage = AtomicJSONStorage(path)
        storage.write({"table": {"1": {"value": 1}}})
        with pytest.raises(TypeError):
            storage.write({"table": {"1": {"value": object()}}})
        assert storage.read() == {"table": {"1": {"value": 1}}}
        assert os.listdir(str(tmp_path)) == ["data.json"]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("")
        assert AtomicJSONStorage(str(path)).read() is None

    def test_ceremony_survives_restart(self, tmp_path):
        path = str(tmp_path / "ceremony.json")
        CeremonyManager(ArtifactStore(path), "demo").create(1)
        manager = CeremonyManager(ArtifactStore(path), "demo")
        acc = manager.contribute("alice", "Entropy1")
        assert CeremonyManager(ArtifactStore(path), "demo").load().transcript_hash == acc.transcript_hash

    def test_stores_on_one_file_share_the_write_lock(self, tmp_path):
        path = str(tmp_path / "ceremony.json")
        assert ArtifactStore(path)._lock is ArtifactStore(str(tmp_path / "." / "ceremony.json"))._lock
        assert ArtifactStore()._lock is not ArtifactStore()._lock

    def test_stale_write_from_another_store(self, tmp_path, phase1_data):
        """다른 저장소 객체가 먼저 쓴 뒤의 쓰기는 StaleBase 로 거부된다."""
        path = str(tmp_path / "ceremony.json")
        fresh = phase1_data["fresh"]
        first, second = ArtifactStore(path), ArtifactStore(path)
        first.save_accumulator("demo", fresh)
        second.save_accumulator("demo", phase1_data["contributed"],
                                expected=accumulator_version(fresh))
        with pytest.raises(StaleBase):
            first.save_accumulator("demo", phase1_data["contributed"],
                                   expected=accumulator_version(fresh))
        assert first.load_accumulator("demo").transcript_hash == \
            phase1_data["contributed"].transcript_hash
