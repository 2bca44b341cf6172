import sys
import os
import random
import pytest

# 프로젝트 루트를 sys.path에 추가
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from zkpipe.circuit import ConstraintSystem
from zkpipe.groth16 import accumulator as accumulators
from zkpipe.groth16 import keys
from zkpipe.groth16.proving import prove


# ── 테스트 상수 ──
TEST_POWER = 3
TEST_MODULUS = 17
TEST_WITNESS = {"a": 3, "b": 4}
EXPECTED_PUBLIC = [8]

PHASE1_CONTRIBUTOR = "First contribution"
PHASE1_ENTROPY = "Entropy1"
KEY_CONTRIBUTOR = "Second contribution"
KEY_ENTROPY = "Entropy2"
THIRD_CONTRIBUTOR = "Third contribution"
THIRD_ENTROPY = "Entropy3"

PROVER_SEED = 4106


@pytest.fixture(scope="session")
def cs():
    """c = (a² + b²) mod 17 제약 시스템."""
    return ConstraintSystem.sum_of_squares_mod(TEST_MODULUS)


@pytest.fixture(scope="session")
def phase1_data():
    """Powers of Tau: 생성 → 기여 1회 → 마무리."""
    fresh = accumulators.create(TEST_POWER)
    contributed = accumulators.contribute(fresh, PHASE1_CONTRIBUTOR, PHASE1_ENTROPY)
    final = accumulators.finalize_phase1(contributed)
    return {"fresh": fresh, "contributed": contributed, "final": final}


@pytest.fixture(scope="session")
def prepared(phase1_data, cs):
    return accumulators.prepare_for_circuit(phase1_data["final"], cs)


@pytest.fixture(scope="session")
def key_data(prepared, cs):
    """증명키: 초기 키 → δ 기여 1회 → 마무리 + 검증키."""
    initial = keys.new_key_set(cs, prepared)
    contributed = keys.contribute(initial, KEY_CONTRIBUTOR, KEY_ENTROPY)
    final, vk = keys.finalize(contributed)
    return {"initial": initial, "contributed": contributed, "final": final, "vk": vk}


@pytest.fixture(scope="session")
def proof_data(key_data):
    proof, public = prove(key_data["final"], TEST_WITNESS, rng=random.Random(PROVER_SEED))
    return {"proof": proof, "public": public}


@pytest.fixture(scope="session")
def two_party_data(phase1_data, cs):
    """누산기와 증명키 모두 기여 2회."""
    contributed = accumulators.contribute(phase1_data["contributed"],
                                          THIRD_CONTRIBUTOR, THIRD_ENTROPY)
    final = accumulators.finalize_phase1(contributed)
    prepared = accumulators.prepare_for_circuit(final, cs)
    initial = keys.new_key_set(cs, prepared)
    first = keys.contribute(initial, KEY_CONTRIBUTOR, KEY_ENTROPY)
    second = keys.contribute(first, THIRD_CONTRIBUTOR, THIRD_ENTROPY)
    key_final, vk = keys.finalize(second)
    return {
        "contributed": contributed,
        "final": final,
        "prepared": prepared,
        "key_contributed": second,
        "key_final": key_final,
        "vk": vk,
    }
