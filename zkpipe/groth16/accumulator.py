"""
Powers of Tau 누산기 (Phase 1 + 회로 준비)
===========================================

다자간 신뢰 설정의 1단계. 각 기여자는 비밀값 (τ, α, β) 을 곱해
누산기를 다시 스케일링하고, 해시 체인에 기여 기록을 남긴다.
한 명이라도 비밀값을 폐기하면 최종 τ, α, β 는 아무도 모른다.

**누산기 내용 (N = 2^power)**:
  | 이름          | 개수   | 값                     |
  |---------------|--------|------------------------|
  | tau_g1        | 2N - 1 | [τ^i]₁                 |
  | tau_g2        | N      | [τ^i]₂                 |
  | alpha_tau_g1  | N      | [α·τ^i]₁               |
  | beta_tau_g1   | N      | [β·τ^i]₁               |
  | beta_g2       | 1      | [β]₂                   |

**단계 (Phase)**:
  PHASE1_OPEN --contribute*--> PHASE1_OPEN --finalize--> PHASE1_FINAL
  --prepare_for_circuit--> PHASE2_PREPARED
  건너뛰거나 되돌릴 수 없다.

**회로 준비**:
  회로 도메인 크기 n 에 대해 [τ^i] 의 앞 n 개에 그룹 IFFT 를 적용하면
  Lagrange 기저 [L_k(τ)] 가 된다. 몫 다항식 h(x) 용 쿼리는
    [τ^i · Z(τ)]₁ = [τ^{i+n}]₁ - [τ^i]₁   (i = 0..n-2)
  이다.

모든 연산은 입력을 바꾸지 않고 새 Accumulator 를 반환한다.
"""

import copy
import enum
import logging

from zkpipe.config import DEFAULT_POLICY, MAX_POWER
from zkpipe.errors import (
    BrokenChain,
    DegreeExceeded,
    EmptyCeremony,
    InvalidDegree,
    WrongPhase,
)
from zkpipe.field import (
    FR, G1, G2, Z1, Z2,
    ec_add, ec_eq, ec_mul, ec_neg, ec_lincomb, ec_ifft,
    get_root_of_unity, same_ratio,
)
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

SECRET_LABELS = ("tau", "alpha", "beta")


class Phase(enum.Enum):
    PHASE1_OPEN = "phase1_open"
    PHASE1_FINAL = "phase1_final"
    PHASE2_PREPARED = "phase2_prepared"


class Accumulator:
    """Powers of Tau 누산기 상태."""

    def __init__(self, power, phase, tau_g1, tau_g2, alpha_tau_g1, beta_tau_g1, beta_g2,
                 contributions, initial_hash, transcript_hash,
                 circuit_hash=None, domain_size=None, lagrange_g1=None, lagrange_g2=None,
                 alpha_lagrange_g1=None, beta_lagrange_g1=None, z_tau_g1=None):
        self.power = power
        self.phase = phase
        self.tau_g1 = list(tau_g1)
        self.tau_g2 = list(tau_g2)
        self.alpha_tau_g1 = list(alpha_tau_g1)
        self.beta_tau_g1 = list(beta_tau_g1)
        self.beta_g2 = beta_g2
        self.contributions = list(contributions)
        self.initial_hash = initial_hash
        self.transcript_hash = transcript_hash
        self.circuit_hash = circuit_hash
        self.domain_size = domain_size
        self.lagrange_g1 = lagrange_g1
        self.lagrange_g2 = lagrange_g2
        self.alpha_lagrange_g1 = alpha_lagrange_g1
        self.beta_lagrange_g1 = beta_lagrange_g1
        self.z_tau_g1 = z_tau_g1

    @property
    def capacity(self):
        return 1 << self.power

    def state_digest(self):
        """누산기의 모든 거듭제곱에 대한 다이제스트 (hex)."""
        t = Transcript(b"zkpipe.accumulator.state")
        t.append_int(b"power", self.power)
        t.append_points(b"tau_g1", self.tau_g1)
        t.append_points(b"tau_g2", self.tau_g2)
        t.append_points(b"alpha_tau_g1", self.alpha_tau_g1)
        t.append_points(b"beta_tau_g1", self.beta_tau_g1)
        t.append_point(b"beta_g2", self.beta_g2)
        return t.hexdigest()

    def key_points(self):
        """기여 기록에 남기는 대표 점. 연속 기여 간 비율 검사에 쓰인다."""
        return {
            "tau_g1": self.tau_g1[1],
            "tau_g2": self.tau_g2[1],
            "alpha_g1": self.alpha_tau_g1[0],
            "beta_g1": self.beta_tau_g1[0],
            "beta_g2": self.beta_g2,
        }

    def _evolve(self, **changes):
        acc = copy.copy(self)
        for name, value in changes.items():
            setattr(acc, name, value)
        return acc

    def __repr__(self):
        return (f"Accumulator(power={self.power}, phase={self.phase.name}, "
                f"contributions={len(self.contributions)})")


def initial_hash(power):
    t = Transcript(b"zkpipe.accumulator.init")
    t.append_int(b"power", power)
    return t.hexdigest()


def create(power):
    """새 Powers of Tau 누산기를 만든다. 모든 거듭제곱은 생성원이다.

    Raises:
        InvalidDegree: power <= 0 또는 power > MAX_POWER
    """
    if not isinstance(power, int) or isinstance(power, bool) or power <= 0 or power > MAX_POWER:
        raise InvalidDegree(f"power must be in 1..{MAX_POWER}, got {power!r}")
    n = 1 << power
    h = initial_hash(power)
    acc = Accumulator(
        power=power,
        phase=Phase.PHASE1_OPEN,
        tau_g1=[G1] * (2 * n - 1),
        tau_g2=[G2] * n,
        alpha_tau_g1=[G1] * n,
        beta_tau_g1=[G1] * n,
        beta_g2=G2,
        contributions=[],
        initial_hash=h,
        transcript_hash=h,
    )
    logger.info(f"created powers of tau accumulator: power={power}, capacity={n}")
    return acc


def _require_phase(acc, phase, operation):
    if acc.phase is not phase:
        raise WrongPhase(f"{operation} requires {phase.name}, accumulator is {acc.phase.name}")


def contribute(acc, contributor, entropy, expected_base=None, policy=DEFAULT_POLICY):
    """기여자 비밀값 (τ, α, β) 로 누산기를 스케일링하고 기여를 체인에 추가한다.

    [τ^i]  → [(τx)^i],   [ατ^i] → [(αa)(τx)^i],   [βτ^i] → [(βb)(τx)^i]

    Args:
        acc: PHASE1_OPEN 누산기
        contributor: 기여자 태그
        entropy: 기여자 엔트로피 (str 또는 bytes)
        expected_base: 기여자가 본 체인 헤드. 다르면 StaleBase.

    Returns:
        Accumulator: 기여가 추가된 새 누산기

    Raises:
        WrongPhase, InsufficientEntropy, StaleBase
    """
    _require_phase(acc, Phase.PHASE1_OPEN, "contribute")
    entropy = check_entropy(entropy, policy)
    check_base(expected_base, acc.transcript_hash)

    prev = acc.transcript_hash
    secrets = derive_secrets(prev, contributor, entropy, SECRET_LABELS)
    x, _ = secrets["tau"]
    a, _ = secrets["alpha"]
    b, _ = secrets["beta"]

    tau_g1 = []
    tau_g2 = []
    alpha_tau_g1 = []
    beta_tau_g1 = []
    x_i = FR(1)
    for i in range(len(acc.tau_g1)):
        tau_g1.append(ec_mul(acc.tau_g1[i], x_i))
        if i < acc.capacity:
            tau_g2.append(ec_mul(acc.tau_g2[i], x_i))
            alpha_tau_g1.append(ec_mul(acc.alpha_tau_g1[i], x_i * a))
            beta_tau_g1.append(ec_mul(acc.beta_tau_g1[i], x_i * b))
        x_i = x_i * x
    beta_g2 = ec_mul(acc.beta_g2, b)

    public_keys = {
        label: PublicKey.create(prev, label, secret, nonce)
        for label, (secret, nonce) in secrets.items()
    }
    nxt = acc._evolve(tau_g1=tau_g1, tau_g2=tau_g2, alpha_tau_g1=alpha_tau_g1,
                      beta_tau_g1=beta_tau_g1, beta_g2=beta_g2)
    contribution = Contribution.create(contributor, prev, public_keys,
                                       nxt.key_points(), nxt.state_digest())
    nxt.contributions = acc.contributions + [contribution]
    nxt.transcript_hash = contribution.hash
    logger.info(f"accumulator contribution #{len(nxt.contributions)} by {contributor!r}: "
                f"{contribution.hash[:16]}...")
    return nxt


def finalize_phase1(acc, policy=DEFAULT_POLICY):
    """Phase 1 을 닫는다. 이후 기여는 받지 않는다.

    Raises:
        WrongPhase: PHASE1_OPEN 이 아닐 때
        EmptyCeremony: 기여 수가 정책 최소치 미만일 때
    """
    _require_phase(acc, Phase.PHASE1_OPEN, "finalize")
    if len(acc.contributions) < policy.min_contributions:
        raise EmptyCeremony(len(acc.contributions), policy.min_contributions)
    logger.info(f"phase 1 finalized after {len(acc.contributions)} contribution(s)")
    return acc._evolve(phase=Phase.PHASE1_FINAL)


def prepare_for_circuit(acc, constraint_system):
    """최종 누산기를 특정 회로에 맞게 준비한다 (Lagrange 기저 + Z(τ) 쿼리).

    Raises:
        WrongPhase: PHASE1_FINAL 이 아닐 때
        DegreeExceeded: 회로 도메인이 2^power 보다 클 때
    """
    _require_phase(acc, Phase.PHASE1_FINAL, "prepare_for_circuit")
    n = constraint_system.domain_size
    if n > acc.capacity:
        raise DegreeExceeded(
            f"circuit {constraint_system.name!r} needs domain {n}, "
            f"accumulator supports {acc.capacity} (power {acc.power})"
        )
    omega = get_root_of_unity(n)
    z_tau_g1 = [ec_add(acc.tau_g1[i + n], ec_neg(acc.tau_g1[i])) for i in range(n - 1)]
    prepared = acc._evolve(
        phase=Phase.PHASE2_PREPARED,
        circuit_hash=constraint_system.content_hash(),
        domain_size=n,
        lagrange_g1=ec_ifft(acc.tau_g1[:n], omega),
        lagrange_g2=ec_ifft(acc.tau_g2[:n], omega),
        alpha_lagrange_g1=ec_ifft(acc.alpha_tau_g1[:n], omega),
        beta_lagrange_g1=ec_ifft(acc.beta_tau_g1[:n], omega),
        z_tau_g1=z_tau_g1,
    )
    logger.info(f"accumulator prepared for circuit {constraint_system.name!r} "
                f"(domain {n}, hash {prepared.circuit_hash[:16]}...)")
    return prepared


# ─────────────────────────────────────────────────────────────────────
# 검증
# ─────────────────────────────────────────────────────────────────────

def replay(acc):
    """기여 체인을 재생해 저장된 헤드와 상태가 맞는지 확인한다.

    Raises:
        BrokenChain
    """
    if acc.initial_hash != initial_hash(acc.power):
        raise BrokenChain("initial hash does not match the accumulator power")
    digest = acc.state_digest()
    if not acc.contributions and digest != create(acc.power).state_digest():
        raise BrokenChain("accumulator without contributions is not in its initial state")
    return replay_chain(acc.initial_hash, acc.contributions, acc.transcript_hash, digest)


def _random_scalars(acc, label, count):
    t = Transcript(b"zkpipe.accumulator.verify")
    t.append_bytes(b"head", acc.transcript_hash)
    return [t.challenge_scalar(label) for _ in range(count)]


def _successive_ratio_g1(acc, points, label):
    """points[i+1] = τ·points[i] 인지 임의 선형결합 하나로 검사한다."""
    rho = _random_scalars(acc, label, len(points) - 1)
    lhs = ec_lincomb(points[:-1], rho, Z1)
    rhs = ec_lincomb(points[1:], rho, Z1)
    return same_ratio(lhs, rhs, G2, acc.tau_g2[1])


def verify_accumulator(acc):
    """체인 재생 + 지식 증명 + 기여 간 비율 + 거듭제곱 일관성 검사.

    Returns:
        bool: 모든 페어링 검사를 통과하면 True

    Raises:
        BrokenChain: 해시 체인이 깨졌을 때
    """
    replay(acc)

    prev_points = create(acc.power).key_points()
    for i, contribution in enumerate(acc.contributions):
        pks = contribution.public_keys
        for label in SECRET_LABELS:
            if label not in pks or not pks[label].is_valid(contribution.prev_hash, label):
                logger.warning(f"contribution {i}: invalid proof of knowledge for {label}")
                return False
        cur = contribution.points
        tau, alpha, beta = pks["tau"], pks["alpha"], pks["beta"]
        checks = [
            same_ratio(prev_points["tau_g1"], cur["tau_g1"],
                       tau.g2_sp(contribution.prev_hash, "tau"), tau.g2_spx),
            same_ratio(tau.g1_s, tau.g1_sx, prev_points["tau_g2"], cur["tau_g2"]),
            same_ratio(prev_points["alpha_g1"], cur["alpha_g1"],
                       alpha.g2_sp(contribution.prev_hash, "alpha"), alpha.g2_spx),
            same_ratio(prev_points["beta_g1"], cur["beta_g1"],
                       beta.g2_sp(contribution.prev_hash, "beta"), beta.g2_spx),
            same_ratio(beta.g1_s, beta.g1_sx, prev_points["beta_g2"], cur["beta_g2"]),
        ]
        if not all(checks):
            logger.warning(f"contribution {i} ({contribution.contributor!r}) "
                           f"does not extend its predecessor")
            return False
        prev_points = cur

    if acc.contributions and not points_match(acc.contributions[-1], acc.key_points()):
        logger.warning("accumulator points differ from the last contribution")
        return False

    consistent = (
        _successive_ratio_g1(acc, acc.tau_g1, b"tau_g1")
        and _successive_ratio_g1(acc, acc.alpha_tau_g1, b"alpha_tau_g1")
        and _successive_ratio_g1(acc, acc.beta_tau_g1, b"beta_tau_g1")
        and same_ratio(G1, acc.tau_g1[1],
                       ec_lincomb(acc.tau_g2[:-1], _random_scalars(acc, b"tau_g2", acc.capacity - 1), Z2),
                       ec_lincomb(acc.tau_g2[1:], _random_scalars(acc, b"tau_g2", acc.capacity - 1), Z2))
        and same_ratio(acc.tau_g1[0], acc.beta_tau_g1[0], acc.tau_g2[0], acc.beta_g2)
    )
    if not consistent:
        logger.warning("accumulator powers are not consistent")
        return False
    if not (ec_eq(acc.tau_g1[0], G1) and ec_eq(acc.tau_g2[0], G2)):
        logger.warning("accumulator powers do not start at the generators")
        return False
    logger.info(f"accumulator verified: {len(acc.contributions)} contribution(s)")
    return True
