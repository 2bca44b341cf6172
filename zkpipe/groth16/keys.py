"""
증명키 / 검증키 유도 (Phase 2)
================================

회로에 맞게 준비된 누산기에서 Groth16 증명키를 만들고, 회로별
기여(δ) 체인을 관리한 뒤 검증키를 유도한다.

**초기 키 (γ = δ = 1)**:
  R1CS 행 k 의 계수 A[k][i], B[k][i], C[k][i] 와 Lagrange 기저 L_k(τ) 로
    A_i(τ) = Σ_k A[k][i]·L_k(τ)   (B_i, C_i 도 같은 방식)
  | 쿼리       | 값                                    | 범위          |
  |------------|---------------------------------------|---------------|
  | a_query    | [A_i(τ)]₁                             | 모든 배선     |
  | b1_query   | [B_i(τ)]₁                             | 모든 배선     |
  | b2_query   | [B_i(τ)]₂                             | 모든 배선     |
  | ic         | [β·A_i(τ) + α·B_i(τ) + C_i(τ)]₁ / γ   | 0..nPublic    |
  | l_query    | [β·A_i(τ) + α·B_i(τ) + C_i(τ)]₁ / δ   | 비공개 배선   |
  | h_query    | [τ^j·Z(τ)]₁ / δ                       | j = 0..n-2    |

**δ 기여**:
  비밀값 d 에 대해 delta_g1, delta_g2 에 d 를 곱하고
  l_query, h_query 에 d⁻¹ 을 곱한다.

**마무리**:
  finalize() 는 최소 한 번 기여된 키를 잠그고 검증키를 유도한다.
"""

import copy
import logging

from zkpipe.config import DEFAULT_POLICY
from zkpipe.errors import (
    CircuitMismatch,
    EmptyKeyCeremony,
    PhaseMismatch,
    WrongPhase,
)
from zkpipe.field import (
    FR, G1, G2, Z1, Z2,
    ec_add, ec_eq, ec_mul, ec_lincomb, same_ratio,
)
from zkpipe.groth16.accumulator import Phase
from zkpipe.groth16.contribution import (
    Contribution,
    PublicKey,
    check_base,
    check_entropy,
    derive_secrets,
    points_match,
    replay_chain,
)
from zkpipe.transcript import Transcript

logger = logging.getLogger(__name__)

DELTA = "delta"


class ProvingKeySet:
    """회로에 바인딩된 Groth16 증명키와 δ 기여 체인."""

    def __init__(self, circuit_hash, accumulator_hash, constraint_system, domain_size,
                 alpha_g1, beta_g1, beta_g2, gamma_g2, delta_g1, delta_g2,
                 a_query, b1_query, b2_query, ic, l_query, h_query,
                 contributions, initial_hash, transcript_hash, finalized=False):
        self.circuit_hash = circuit_hash
        self.accumulator_hash = accumulator_hash
        self.constraint_system = constraint_system
        self.domain_size = domain_size
        self.alpha_g1 = alpha_g1
        self.beta_g1 = beta_g1
        self.beta_g2 = beta_g2
        self.gamma_g2 = gamma_g2
        self.delta_g1 = delta_g1
        self.delta_g2 = delta_g2
        self.a_query = list(a_query)
        self.b1_query = list(b1_query)
        self.b2_query = list(b2_query)
        self.ic = list(ic)
        self.l_query = list(l_query)
        self.h_query = list(h_query)
        self.contributions = list(contributions)
        self.initial_hash = initial_hash
        self.transcript_hash = transcript_hash
        self.finalized = finalized

    @property
    def n_public(self):
        return self.constraint_system.n_public

    def state_digest(self):
        t = Transcript(b"zkpipe.keyset.state")
        t.append_bytes(b"circuit", self.circuit_hash)
        t.append_bytes(b"accumulator", self.accumulator_hash)
        t.append_int(b"domain", self.domain_size)
        for name in ("alpha_g1", "beta_g1", "beta_g2", "gamma_g2", "delta_g1", "delta_g2"):
            t.append_point(name.encode(), getattr(self, name))
        for name in ("a_query", "b1_query", "b2_query", "ic", "l_query", "h_query"):
            t.append_points(name.encode(), getattr(self, name))
        return t.hexdigest()

    def key_points(self):
        return {"delta_g1": self.delta_g1, "delta_g2": self.delta_g2}

    def _evolve(self, **changes):
        key_set = copy.copy(self)
        for name, value in changes.items():
            setattr(key_set, name, value)
        return key_set

    def __repr__(self):
        return (f"ProvingKeySet(circuit={self.circuit_hash[:16]}..., "
                f"contributions={len(self.contributions)}, finalized={self.finalized})")


class VerificationKey:
    """Groth16 검증키. 마무리된 증명키의 순수 함수이다."""

    protocol = "groth16"
    curve = "bn128"

    def __init__(self, n_public, alpha_g1, beta_g2, gamma_g2, delta_g2, ic):
        self.n_public = n_public
        self.alpha_g1 = alpha_g1
        self.beta_g2 = beta_g2
        self.gamma_g2 = gamma_g2
        self.delta_g2 = delta_g2
        self.ic = list(ic)

    def __eq__(self, other):
        if not isinstance(other, VerificationKey):
            return False
        return (self.n_public == other.n_public
                and len(self.ic) == len(other.ic)
                and ec_eq(self.alpha_g1, other.alpha_g1)
                and ec_eq(self.beta_g2, other.beta_g2)
                and ec_eq(self.gamma_g2, other.gamma_g2)
                and ec_eq(self.delta_g2, other.delta_g2)
                and all(ec_eq(p, q) for p, q in zip(self.ic, other.ic)))

    def __repr__(self):
        return f"VerificationKey(nPublic={self.n_public})"


def _initial_key_hash(accumulator_hash, circuit_hash, state_digest):
    t = Transcript(b"zkpipe.keyset.init")
    t.append_bytes(b"accumulator", accumulator_hash)
    t.append_bytes(b"circuit", circuit_hash)
    t.append_bytes(b"state", state_digest)
    return t.hexdigest()


def new_key_set(constraint_system, acc):
    """준비된 누산기에서 회로의 초기 증명키를 만든다 (기여 0, γ = δ = 1).

    Raises:
        PhaseMismatch: 누산기가 PHASE2_PREPARED 가 아닐 때
        CircuitMismatch: 누산기가 다른 회로에 맞게 준비되었을 때
    """
    if acc.phase is not Phase.PHASE2_PREPARED:
        raise PhaseMismatch(f"key derivation requires a PHASE2_PREPARED accumulator, "
                            f"got {acc.phase.name}")
    circuit_hash = constraint_system.content_hash()
    if acc.circuit_hash != circuit_hash:
        raise CircuitMismatch(
            f"accumulator prepared for circuit {str(acc.circuit_hash)[:16]}..., "
            f"constraint system {constraint_system.name!r} is {circuit_hash[:16]}..."
        )

    m = constraint_system.n_wires
    a_query = [Z1] * m
    b1_query = [Z1] * m
    b2_query = [Z2] * m
    combined = [Z1] * m
    for k, (a, b, c) in enumerate(constraint_system.qap_rows()):
        for wire, coeff in a.items():
            a_query[wire] = ec_add(a_query[wire], ec_mul(acc.lagrange_g1[k], coeff))
            combined[wire] = ec_add(combined[wire], ec_mul(acc.beta_lagrange_g1[k], coeff))
        for wire, coeff in b.items():
            b1_query[wire] = ec_add(b1_query[wire], ec_mul(acc.lagrange_g1[k], coeff))
            b2_query[wire] = ec_add(b2_query[wire], ec_mul(acc.lagrange_g2[k], coeff))
            combined[wire] = ec_add(combined[wire], ec_mul(acc.alpha_lagrange_g1[k], coeff))
        for wire, coeff in c.items():
            combined[wire] = ec_add(combined[wire], ec_mul(acc.lagrange_g1[k], coeff))

    n_pub = constraint_system.n_public
    key_set = ProvingKeySet(
        circuit_hash=circuit_hash,
        accumulator_hash=acc.transcript_hash,
        constraint_system=constraint_system,
        domain_size=acc.domain_size,
        alpha_g1=acc.alpha_tau_g1[0],
        beta_g1=acc.beta_tau_g1[0],
        beta_g2=acc.beta_g2,
        gamma_g2=G2,
        delta_g1=G1,
        delta_g2=G2,
        a_query=a_query,
        b1_query=b1_query,
        b2_query=b2_query,
        ic=combined[:n_pub + 1],
        l_query=combined[n_pub + 1:],
        h_query=acc.z_tau_g1,
        contributions=[],
        initial_hash=None,
        transcript_hash=None,
    )
    key_set.initial_hash = _initial_key_hash(acc.transcript_hash, circuit_hash,
                                             key_set.state_digest())
    key_set.transcript_hash = key_set.initial_hash
    logger.info(f"derived initial proving key for {constraint_system.name!r}: "
                f"{m} wires, {n_pub} public, domain {acc.domain_size}")
    return key_set


def contribute(key_set, contributor, entropy, expected_base=None, policy=DEFAULT_POLICY):
    """δ 기여를 추가한다.

    Raises:
        WrongPhase: 이미 마무리된 키
        InsufficientEntropy, StaleBase
    """
    if key_set.finalized:
        raise WrongPhase("proving key is finalized, no further contributions accepted")
    entropy = check_entropy(entropy, policy)
    check_base(expected_base, key_set.transcript_hash)

    prev = key_set.transcript_hash
    d, nonce = derive_secrets(prev, contributor, entropy, (DELTA,))[DELTA]
    d_inv = FR(1) / d
    nxt = key_set._evolve(
        delta_g1=ec_mul(key_set.delta_g1, d),
        delta_g2=ec_mul(key_set.delta_g2, d),
        l_query=[ec_mul(p, d_inv) for p in key_set.l_query],
        h_query=[ec_mul(p, d_inv) for p in key_set.h_query],
    )
    contribution = Contribution.create(
        contributor, prev, {DELTA: PublicKey.create(prev, DELTA, d, nonce)},
        nxt.key_points(), nxt.state_digest(),
    )
    nxt.contributions = key_set.contributions + [contribution]
    nxt.transcript_hash = contribution.hash
    logger.info(f"proving key contribution #{len(nxt.contributions)} by {contributor!r}: "
                f"{contribution.hash[:16]}...")
    return nxt


def verification_key(key_set):
    return VerificationKey(
        n_public=key_set.n_public,
        alpha_g1=key_set.alpha_g1,
        beta_g2=key_set.beta_g2,
        gamma_g2=key_set.gamma_g2,
        delta_g2=key_set.delta_g2,
        ic=key_set.ic,
    )


def finalize(key_set, policy=DEFAULT_POLICY):
    """증명키를 잠그고 검증키를 유도한다.

    Returns:
        (ProvingKeySet, VerificationKey)

    Raises:
        WrongPhase: 이미 마무리된 키
        EmptyKeyCeremony: 기여 수가 정책 최소치 미만일 때
    """
    if key_set.finalized:
        raise WrongPhase("proving key is already finalized")
    if len(key_set.contributions) < policy.min_contributions:
        raise EmptyKeyCeremony(len(key_set.contributions), policy.min_contributions)
    final = key_set._evolve(finalized=True)
    logger.info(f"proving key finalized after {len(final.contributions)} contribution(s)")
    return final, verification_key(final)


def replay(key_set):
    """δ 기여 체인을 재생한다.

    Raises:
        BrokenChain
    """
    return replay_chain(key_set.initial_hash, key_set.contributions,
                        key_set.transcript_hash, key_set.state_digest())


def _fold(points, label, head, zero):
    t = Transcript(b"zkpipe.keyset.verify")
    t.append_bytes(b"head", head)
    return ec_lincomb(points, [t.challenge_scalar(label) for _ in points], zero)


def verify_key_set(key_set, acc):
    """증명키가 누산기와 δ 기여 체인으로부터 올바르게 유도되었는지 검사한다.

    Returns:
        bool

    Raises:
        BrokenChain: 해시 체인이 깨졌을 때
        PhaseMismatch, CircuitMismatch: 누산기가 키와 맞지 않을 때
    """
    replay(key_set)
    if acc.transcript_hash != key_set.accumulator_hash:
        raise CircuitMismatch("proving key was derived from a different accumulator")

    initial = new_key_set(key_set.constraint_system, acc)
    if initial.initial_hash != key_set.initial_hash:
        logger.warning("initial proving key does not match the accumulator")
        return False

    for name in ("alpha_g1", "beta_g1", "beta_g2", "gamma_g2"):
        if not ec_eq(getattr(initial, name), getattr(key_set, name)):
            logger.warning(f"{name} differs from the accumulator")
            return False
    for name in ("a_query", "b1_query", "b2_query", "ic"):
        ours, theirs = getattr(initial, name), getattr(key_set, name)
        if len(ours) != len(theirs) or not all(ec_eq(p, q) for p, q in zip(ours, theirs)):
            logger.warning(f"{name} differs from the accumulator")
            return False

    prev = initial.key_points()
    for i, contribution in enumerate(key_set.contributions):
        pk = contribution.public_keys.get(DELTA)
        if pk is None or not pk.is_valid(contribution.prev_hash, DELTA):
            logger.warning(f"key contribution {i}: invalid proof of knowledge")
            return False
        cur = contribution.points
        if not (same_ratio(prev["delta_g1"], cur["delta_g1"],
                           pk.g2_sp(contribution.prev_hash, DELTA), pk.g2_spx)
                and same_ratio(pk.g1_s, pk.g1_sx, prev["delta_g2"], cur["delta_g2"])):
            logger.warning(f"key contribution {i} ({contribution.contributor!r}) "
                           f"does not extend its predecessor")
            return False
        prev = cur
    if key_set.contributions and not points_match(key_set.contributions[-1],
                                                  key_set.key_points()):
        return False

    # [x/δ]₁ · [δ]₂ == [x]₁ · G2
    head = key_set.transcript_hash
    for name in ("l_query", "h_query"):
        ours, theirs = getattr(initial, name), getattr(key_set, name)
        if len(ours) != len(theirs):
            return False
        if not same_ratio(_fold(theirs, name.encode(), head, Z1),
                          _fold(ours, name.encode(), head, Z1),
                          G2, key_set.delta_g2):
            logger.warning(f"{name} is not scaled by 1/delta")
            return False
    logger.info(f"proving key verified: {len(key_set.contributions)} contribution(s)")
    return True
