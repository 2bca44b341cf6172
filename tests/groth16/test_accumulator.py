"""
Powers of Tau accumulator tests

테스트 범위:
  - 생성: 지수 범위 검사, 초기 상태
  - 기여: 엔트로피 정책, 해시 체인, StaleBase, 거듭제곱 스케일링
  - 단계: 건너뛰기/되돌리기 불가
  - 회로 준비: Lagrange 기저, Z(τ) 쿼리, DegreeExceeded
  - 체인 재생: 저장 값 변조 탐지
"""

import copy
import pytest

from zkpipe.circuit import CircuitBuilder, ConstraintSystem
from zkpipe.config import CeremonyPolicy, MAX_POWER
from zkpipe.errors import (
    BrokenChain,
    DegreeExceeded,
    EmptyCeremony,
    InsufficientEntropy,
    InvalidDegree,
    StaleBase,
    WrongPhase,
)
from zkpipe.field import G1, G2, ec_add, ec_eq, ec_mul, ec_neg, same_ratio
from zkpipe.groth16 import accumulator as accumulators
from zkpipe.groth16.accumulator import Phase
from zkpipe.groth16.contribution import PublicKey


class TestCreate:
    def test_fresh_state(self):
        acc = accumulators.create(2)
        assert acc.phase is Phase.PHASE1_OPEN
        assert acc.contributions == []
        assert acc.transcript_hash == acc.initial_hash
        assert len(acc.tau_g1) == 7
        assert len(acc.tau_g2) == 4
        assert len(acc.alpha_tau_g1) == 4
        assert len(acc.beta_tau_g1) == 4

    def test_initial_hash_is_deterministic(self):
        assert accumulators.create(2).initial_hash == accumulators.create(2).initial_hash
        assert accumulators.create(2).initial_hash != accumulators.create(3).initial_hash

    @pytest.mark.parametrize("power", [0, -1, MAX_POWER + 1])
    def test_invalid_degree(self, power):
        with pytest.raises(InvalidDegree):
            accumulators.create(power)


class TestContribute:
    def test_chain_links(self, phase1_data):
        fresh, acc = phase1_data["fresh"], phase1_data["contributed"]
        assert len(acc.contributions) == 1
        assert acc.contributions[0].prev_hash == fresh.initial_hash
        assert acc.transcript_hash == acc.contributions[0].hash
        assert acc.transcript_hash != fresh.transcript_hash

    def test_input_not_mutated(self, phase1_data):
        fresh = phase1_data["fresh"]
        assert fresh.contributions == []
        assert ec_eq(fresh.tau_g1[1], G1)

    def test_powers_are_consecutive(self, phase1_data):
        """[τ^(i+1)]₁ 과 [τ^i]₁ 의 비율이 [τ]₂ 와 같다."""
        acc = phase1_data["contributed"]
        for i in (0, 3, len(acc.tau_g1) - 2):
            assert same_ratio(acc.tau_g1[i], acc.tau_g1[i + 1], G2, acc.tau_g2[1])

    def test_deterministic_for_same_entropy(self, phase1_data):
        again = accumulators.contribute(phase1_data["fresh"], "First contribution", "Entropy1")
        assert again.transcript_hash == phase1_data["contributed"].transcript_hash

    def test_entropy_changes_hash(self, phase1_data):
        other = accumulators.contribute(phase1_data["fresh"], "First contribution", "Entropy9")
        assert other.transcript_hash != phase1_data["contributed"].transcript_hash

    def test_proof_of_knowledge(self, phase1_data):
        c = phase1_data["contributed"].contributions[0]
        for label in ("tau", "alpha", "beta"):
            assert c.public_keys[label].is_valid(c.prev_hash, label)

    def test_proof_of_knowledge_bound_to_prev_hash(self, phase1_data):
        c = phase1_data["contributed"].contributions[0]
        assert not c.public_keys["tau"].is_valid("00" * 64, "tau")

    @pytest.mark.parametrize("entropy", ["", "short", "aaaaaaaaaaaa", b"\x00\x01\x00\x01\x00\x01\x00\x01"])
    def test_insufficient_entropy(self, entropy):
        with pytest.raises(InsufficientEntropy):
            accumulators.contribute(accumulators.create(1), "weak", entropy)

    def test_entropy_policy(self):
        policy = CeremonyPolicy(min_entropy_bytes=2, min_distinct_bytes=2)
        acc = accumulators.contribute(accumulators.create(1), "lenient", "ab", policy=policy)
        assert len(acc.contributions) == 1

    def test_stale_base(self, phase1_data):
        fresh = phase1_data["fresh"]
        with pytest.raises(StaleBase) as exc:
            accumulators.contribute(phase1_data["contributed"], "late", "Entropy3",
                                    expected_base=fresh.transcript_hash)
        assert exc.value.expected == fresh.transcript_hash

    def test_expected_base_matches(self, phase1_data):
        fresh = phase1_data["fresh"]
        acc = accumulators.contribute(fresh, "First contribution", "Entropy1",
                                      expected_base=fresh.transcript_hash)
        assert len(acc.contributions) == 1


class TestPhases:
    def test_finalize_empty(self, phase1_data):
        with pytest.raises(EmptyCeremony):
            accumulators.finalize_phase1(phase1_data["fresh"])

    def test_finalize_below_policy(self, phase1_data):
        policy = CeremonyPolicy(min_contributions=2)
        with pytest.raises(EmptyCeremony):
            accumulators.finalize_phase1(phase1_data["contributed"], policy=policy)

    def test_policy_rejects_zero(self):
        with pytest.raises(ValueError):
            CeremonyPolicy(min_contributions=0)

    def test_contribute_after_finalize(self, phase1_data):
        with pytest.raises(WrongPhase):
            accumulators.contribute(phase1_data["final"], "late", "Entropy3")

    def test_finalize_twice(self, phase1_data):
        with pytest.raises(WrongPhase):
            accumulators.finalize_phase1(phase1_data["final"])

    def test_prepare_before_finalize(self, phase1_data, cs):
        with pytest.raises(WrongPhase):
            accumulators.prepare_for_circuit(phase1_data["contributed"], cs)

    def test_prepare_twice(self, prepared, cs):
        with pytest.raises(WrongPhase):
            accumulators.prepare_for_circuit(prepared, cs)

    def test_contribute_after_prepare(self, prepared):
        with pytest.raises(WrongPhase):
            accumulators.contribute(prepared, "late", "Entropy3")


class TestPrepare:
    def test_binding(self, prepared, cs):
        assert prepared.phase is Phase.PHASE2_PREPARED
        assert prepared.circuit_hash == cs.content_hash()
        assert prepared.domain_size == 8
        assert len(prepared.lagrange_g1) == 8
        assert len(prepared.z_tau_g1) == 7

    def test_lagrange_basis_sums_to_generator(self, prepared):
        """Σ_k L_k(x) = 1"""
        total = prepared.lagrange_g1[0]
        for p in prepared.lagrange_g1[1:]:
            total = ec_add(total, p)
        assert ec_eq(total, G1)

    def test_z_tau_query(self, prepared, phase1_data):
        acc = phase1_data["final"]
        n = prepared.domain_size
        expected = ec_add(acc.tau_g1[n], ec_neg(acc.tau_g1[0]))
        assert ec_eq(prepared.z_tau_g1[0], expected)

    def test_degree_exceeded(self, cs):
        small = accumulators.create(2)
        small = accumulators.contribute(small, "First contribution", "Entropy1")
        small = accumulators.finalize_phase1(small)
        with pytest.raises(DegreeExceeded):
            accumulators.prepare_for_circuit(small, cs)

    def test_larger_circuit(self, phase1_data):
        builder = CircuitBuilder("chain")
        builder.input("x")
        builder.output("y")
        prev = "x"
        for i in range(8):
            prev = builder.mul(prev, "x", f"x{i}")
        builder.linear({prev: 1}, "y")
        big = builder.build()
        assert big.domain_size == 16
        with pytest.raises(DegreeExceeded):
            accumulators.prepare_for_circuit(phase1_data["final"], big)


class TestReplay:
    def test_replay(self, phase1_data, prepared):
        for acc in (phase1_data["fresh"], phase1_data["contributed"], prepared):
            assert accumulators.replay(acc) == acc.transcript_hash

    def test_tampered_power(self, phase1_data):
        acc = copy.copy(phase1_data["contributed"])
        acc.tau_g1 = list(acc.tau_g1)
        acc.tau_g1[2] = ec_mul(acc.tau_g1[2], 2)
        with pytest.raises(BrokenChain):
            accumulators.replay(acc)

    def test_tampered_head(self, phase1_data):
        acc = copy.copy(phase1_data["contributed"])
        acc.transcript_hash = phase1_data["fresh"].transcript_hash
        with pytest.raises(BrokenChain):
            accumulators.replay(acc)

    def test_tampered_contributor(self, phase1_data):
        acc = copy.copy(phase1_data["contributed"])
        forged = copy.copy(acc.contributions[0])
        forged.contributor = "Mallory"
        acc.contributions = [forged]
        with pytest.raises(BrokenChain):
            accumulators.replay(acc)

    def test_tampered_fresh_state(self, phase1_data):
        acc = copy.copy(phase1_data["fresh"])
        acc.beta_g2 = ec_mul(G2, 5)
        with pytest.raises(BrokenChain):
            accumulators.replay(acc)

    def test_single_bit_in_hash(self, phase1_data):
        acc = copy.copy(phase1_data["contributed"])
        forged = copy.copy(acc.contributions[0])
        flipped = int(forged.hash[-1], 16) ^ 1
        forged.hash = forged.hash[:-1] + format(flipped, "x")
        acc.contributions = [forged]
        acc.transcript_hash = forged.hash
        with pytest.raises(BrokenChain):
            accumulators.replay(acc)


class TestTwoContributions:
    def test_chain(self, two_party_data, phase1_data):
        acc = two_party_data["contributed"]
        first, second = acc.contributions
        assert first.hash == phase1_data["contributed"].transcript_hash
        assert second.prev_hash == first.hash
        assert accumulators.replay(acc) == second.hash

    def test_interior_state_digest(self, two_party_data):
        acc = copy.copy(two_party_data["contributed"])
        first = copy.copy(acc.contributions[0])
        first.state_digest = "00" * 64
        acc.contributions = [first, acc.contributions[1]]
        with pytest.raises(BrokenChain):
            accumulators.replay(acc)

    def test_interior_rehashed(self, two_party_data):
        """앞 기여의 해시를 다시 계산해도 다음 기여와의 연결이 끊긴다."""
        acc = copy.copy(two_party_data["contributed"])
        first = copy.copy(acc.contributions[0])
        first.contributor = "Mallory"
        first.hash = first.recompute_hash()
        acc.contributions = [first, acc.contributions[1]]
        with pytest.raises(BrokenChain):
            accumulators.replay(acc)


@pytest.mark.slow
class TestVerifyAccumulator:
    def test_valid(self, phase1_data):
        assert accumulators.verify_accumulator(phase1_data["final"])

    def test_forged_public_key(self, phase1_data):
        """해시를 다시 계산해도 지식 증명이 맞지 않으면 거부된다."""
        acc = copy.copy(phase1_data["contributed"])
        c = copy.copy(acc.contributions[0])
        pk = c.public_keys["tau"]
        c.public_keys = dict(c.public_keys)
        c.public_keys["tau"] = PublicKey(pk.g1_s, ec_mul(pk.g1_sx, 2), pk.g2_spx)
        c.hash = c.recompute_hash()
        acc.contributions = [c]
        acc.transcript_hash = c.hash
        assert not accumulators.verify_accumulator(acc)

    def test_two_contributions(self, two_party_data):
        assert accumulators.verify_accumulator(two_party_data["final"])

    def test_second_contribution_must_extend_first(self, two_party_data):
        acc = copy.copy(two_party_data["contributed"])
        first, second = acc.contributions
        forged = copy.copy(second)
        forged.points = dict(second.points)
        forged.points["tau_g1"] = ec_mul(second.points["tau_g1"], 2)
        forged.hash = forged.recompute_hash()
        acc.contributions = [first, forged]
        acc.transcript_hash = forged.hash
        assert accumulators.replay(acc) == forged.hash
        assert not accumulators.verify_accumulator(acc)
