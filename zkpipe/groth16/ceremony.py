"""
세레모니 진행 관리
===================

Powers of Tau (phase 1), 회로 준비, 증명키 기여 (phase 2) 를 순서대로
진행하고, 상태가 바뀔 때마다 전체 산출물을 저장소에 기록한다.

**진행 순서**:
  create → contribute × N → finalize → prepare
  → new_key_set → contribute_key × M → finalize_keys

모든 단계는 저장된 상태를 다시 읽어 해시 체인을 재생한 뒤, 요청한
연산이 현재 단계에 맞는지 확인하고 시작한다. 저장 직전에는 읽었던
버전과 저장소의 버전을 비교한다 (StaleBase).
오류는 그대로 호출자에게 전달되며, 실패한 단계는 저장소를 바꾸지 않는다.

사용 예시:
    >>> manager = CeremonyManager(ArtifactStore(), "demo")
    >>> manager.run(4, [("alice", "Entropy1")], cs)
    >>> manager.new_key_set(cs)
    >>> manager.contribute_key("bob", "Entropy2")
    >>> key_set, vk = manager.finalize_keys()
"""

import logging

from zkpipe.config import DEFAULT_POLICY
from zkpipe.errors import CircuitMismatch, PhaseMismatch, WrongPhase
from zkpipe.groth16 import accumulator as accumulators
from zkpipe.groth16 import keys
from zkpipe.groth16.accumulator import Phase
from zkpipe.storage import accumulator_version, key_set_version

logger = logging.getLogger(__name__)


def _check_circuit(name, circuit_hash, constraint_system):
    expected = constraint_system.content_hash()
    if circuit_hash != expected:
        raise CircuitMismatch(
            f"ceremony {name!r} is bound to circuit {str(circuit_hash)[:16]}..., "
            f"constraint system {constraint_system.name!r} is {expected[:16]}..."
        )


class CeremonyManager:

    def __init__(self, store, name, policy=DEFAULT_POLICY):
        self.store = store
        self.name = name
        self.policy = policy

    # ── phase 1 ──

    def load(self):
        """저장된 누산기를 읽고 체인을 재생한다. 없으면 None."""
        acc = self.store.load_accumulator(self.name)
        if acc is not None:
            accumulators.replay(acc)
        return acc

    def _resume(self, *phases):
        acc = self.load()
        if acc is None:
            raise WrongPhase(f"ceremony {self.name!r} has not been created")
        if acc.phase not in phases:
            raise WrongPhase(
                f"ceremony {self.name!r} is {acc.phase.name}, "
                f"expected {' or '.join(p.name for p in phases)}"
            )
        return acc

    def _save(self, acc, base):
        self.store.save_accumulator(self.name, acc, expected=accumulator_version(base))
        return acc

    def create(self, power):
        if self.store.load_accumulator(self.name) is not None:
            raise WrongPhase(f"ceremony {self.name!r} already exists")
        acc = accumulators.create(power)
        logger.info(f"ceremony {self.name!r}: created with power {power}")
        return self._save(acc, None)

    def contribute(self, contributor, entropy, expected_base=None):
        base = self._resume(Phase.PHASE1_OPEN)
        acc = accumulators.contribute(base, contributor, entropy,
                                      expected_base=expected_base, policy=self.policy)
        return self._save(acc, base)

    def finalize(self):
        base = self._resume(Phase.PHASE1_OPEN)
        return self._save(accumulators.finalize_phase1(base, policy=self.policy), base)

    def prepare(self, constraint_system):
        base = self._resume(Phase.PHASE1_FINAL)
        return self._save(accumulators.prepare_for_circuit(base, constraint_system), base)

    def run(self, power, contributions, constraint_system):
        """phase 1 전체를 진행한다. 이미 저장된 단계는 건너뛴다.

        Args:
            power: 누산기 지수
            contributions: [(기여자, 엔트로피), ...]
            constraint_system: 준비할 회로

        Returns:
            Accumulator: PHASE2_PREPARED 누산기
        """
        acc = self.load()
        if acc is None:
            acc = self.create(power)
        if acc.phase is Phase.PHASE1_OPEN:
            for contributor, entropy in contributions[len(acc.contributions):]:
                acc = self.contribute(contributor, entropy, expected_base=acc.transcript_hash)
            acc = self.finalize()
        if acc.phase is Phase.PHASE1_FINAL:
            acc = self.prepare(constraint_system)
        else:
            _check_circuit(self.name, acc.circuit_hash, constraint_system)
        return acc

    def discard(self):
        self.store.discard(self.name)

    # ── phase 2 (proving key) ──

    def load_keys(self):
        key_set = self.store.load_key_set(self.name)
        if key_set is not None:
            keys.replay(key_set)
        return key_set

    def _resume_keys(self, finalized=False):
        key_set = self.load_keys()
        if key_set is None:
            raise PhaseMismatch(f"ceremony {self.name!r} has no proving key")
        if key_set.finalized != finalized:
            state = "finalized" if key_set.finalized else "open"
            raise WrongPhase(f"proving key of ceremony {self.name!r} is {state}")
        return key_set

    def _save_keys(self, key_set, base):
        self.store.save_key_set(self.name, key_set, expected=key_set_version(base))
        return key_set

    def new_key_set(self, constraint_system):
        acc = self._resume(Phase.PHASE2_PREPARED)
        if self.store.load_key_set(self.name) is not None:
            raise WrongPhase(f"ceremony {self.name!r} already has a proving key")
        return self._save_keys(keys.new_key_set(constraint_system, acc), None)

    def contribute_key(self, contributor, entropy, expected_base=None):
        base = self._resume_keys()
        key_set = keys.contribute(base, contributor, entropy,
                                  expected_base=expected_base, policy=self.policy)
        return self._save_keys(key_set, base)

    def finalize_keys(self):
        base = self._resume_keys()
        key_set, vk = keys.finalize(base, policy=self.policy)
        self._save_keys(key_set, base)
        return key_set, vk

    def run_keys(self, contributions, constraint_system):
        """phase 2 전체를 진행한다. 이미 저장된 단계는 건너뛴다.

        Returns:
            (ProvingKeySet, VerificationKey)
        """
        key_set = self.load_keys()
        if key_set is None:
            key_set = self.new_key_set(constraint_system)
        _check_circuit(self.name, key_set.circuit_hash, constraint_system)
        if key_set.finalized:
            return key_set, keys.verification_key(key_set)
        for contributor, entropy in contributions[len(key_set.contributions):]:
            key_set = self.contribute_key(contributor, entropy,
                                          expected_base=key_set.transcript_hash)
        return self.finalize_keys()
