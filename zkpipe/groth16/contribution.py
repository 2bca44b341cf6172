"""
기여(Contribution) 와 해시 체인
================================

Powers of Tau 와 증명키 세레모니가 공유하는 기여 기록 로직.

**기여 하나의 구성**:
  | 필드          | 내용                                         |
  |---------------|----------------------------------------------|
  | contributor   | 기여자 태그                                  |
  | prev_hash     | 직전 트랜스크립트 해시 (체인 연결)           |
  | public_keys   | 비밀값별 지식 증명 공개키 (g1_s, g1_sx, g2_spx) |
  | points        | 기여 후의 대표 점 (비율 검사에 사용)         |
  | state_digest  | 기여 후 전체 상태의 다이제스트               |
  | hash          | 위 내용 전체의 해시 = 새 체인 헤드            |

**지식 증명 (proof of knowledge)**:
  비밀값 x 와 임시값 s 에 대해
    g1_s  = s·G1,  g1_sx = (s·x)·G1
    g2_sp = H(prev_hash, label, g1_s, g1_sx)·G2
    g2_spx = x·g2_sp
  e(g1_s, g2_spx) == e(g1_sx, g2_sp) 이면 기여자가 x 를 알고 있다.
  g2_spx / g2_sp 의 비율은 곧 x 이므로, 이전 점과 새 점의 비율 검사에도
  그대로 쓰인다.

**체인 불변식**:
  contributions[i].prev_hash == contributions[i-1].hash
  (i == 0 이면 initial_hash), 추가만 가능하다.
"""

import logging

from zkpipe.config import DEFAULT_POLICY
from zkpipe.errors import BrokenChain, InsufficientEntropy, StaleBase
from zkpipe.field import G1, G2, ec_mul, ec_eq, same_ratio
from zkpipe.transcript import Transcript

logger = logging.getLogger(__name__)


def check_entropy(entropy, policy=DEFAULT_POLICY):
    """엔트로피를 bytes 로 바꾸고 정책을 만족하는지 검사한다.

    Raises:
        InsufficientEntropy: 길이 또는 서로 다른 바이트 수가 부족할 때
    """
    if isinstance(entropy, str):
        entropy = entropy.encode("utf-8")
    entropy = bytes(entropy or b"")
    if len(entropy) < policy.min_entropy_bytes:
        raise InsufficientEntropy(
            f"entropy has {len(entropy)} byte(s), "
            f"at least {policy.min_entropy_bytes} required"
        )
    distinct = len(set(entropy))
    if distinct < policy.min_distinct_bytes:
        raise InsufficientEntropy(
            f"entropy has {distinct} distinct byte value(s), "
            f"at least {policy.min_distinct_bytes} required"
        )
    return entropy


def check_base(expected_base, head):
    if expected_base is not None and expected_base != head:
        raise StaleBase(expected_base, head)


def derive_secrets(prev_hash, contributor, entropy, labels):
    """직전 해시 + 기여자 + 엔트로피로부터 비밀값과 임시값을 유도한다.

    Returns:
        dict: label → (secret, nonce)  (둘 다 0 이 아닌 FR)
    """
    t = Transcript(b"zkpipe.secrets")
    t.append_bytes(b"prev", prev_hash)
    t.append_bytes(b"contributor", contributor)
    t.append_bytes(b"entropy", entropy)
    secrets = {}
    for label in labels:
        secret = t.challenge_scalar(label.encode() + b".secret")
        nonce = t.challenge_scalar(label.encode() + b".nonce")
        secrets[label] = (secret, nonce)
    return secrets


def _hash_to_g2(prev_hash, label, g1_s, g1_sx):
    t = Transcript(b"zkpipe.pok")
    t.append_bytes(b"prev", prev_hash)
    t.append_bytes(b"label", label)
    t.append_point(b"g1_s", g1_s)
    t.append_point(b"g1_sx", g1_sx)
    return ec_mul(G2, t.challenge_scalar(b"g2_sp"))


class PublicKey:
    """비밀값 하나에 대한 지식 증명 공개키."""

    def __init__(self, g1_s, g1_sx, g2_spx):
        self.g1_s = g1_s
        self.g1_sx = g1_sx
        self.g2_spx = g2_spx

    @classmethod
    def create(cls, prev_hash, label, secret, nonce):
        g1_s = ec_mul(G1, nonce)
        g1_sx = ec_mul(G1, nonce * secret)
        g2_sp = _hash_to_g2(prev_hash, label, g1_s, g1_sx)
        return cls(g1_s, g1_sx, ec_mul(g2_sp, secret))

    def g2_sp(self, prev_hash, label):
        return _hash_to_g2(prev_hash, label, self.g1_s, self.g1_sx)

    def is_valid(self, prev_hash, label):
        return same_ratio(self.g1_s, self.g1_sx, self.g2_sp(prev_hash, label), self.g2_spx)

    def __eq__(self, other):
        if not isinstance(other, PublicKey):
            return False
        return (ec_eq(self.g1_s, other.g1_s) and ec_eq(self.g1_sx, other.g1_sx)
                and ec_eq(self.g2_spx, other.g2_spx))


class Contribution:
    """해시 체인에 추가되는 기여 기록. 생성 후 변경하지 않는다."""

    def __init__(self, contributor, prev_hash, public_keys, points, state_digest, hash):
        self.contributor = contributor
        self.prev_hash = prev_hash
        self.public_keys = dict(public_keys)
        self.points = dict(points)
        self.state_digest = state_digest
        self.hash = hash

    @classmethod
    def create(cls, contributor, prev_hash, public_keys, points, state_digest):
        h = contribution_hash(contributor, prev_hash, public_keys, points, state_digest)
        return cls(contributor, prev_hash, public_keys, points, state_digest, h)

    def recompute_hash(self):
        return contribution_hash(self.contributor, self.prev_hash, self.public_keys,
                                 self.points, self.state_digest)

    def __repr__(self):
        return f"Contribution({self.contributor!r}, hash={self.hash[:16]}...)"


def contribution_hash(contributor, prev_hash, public_keys, points, state_digest):
    t = Transcript(b"zkpipe.contribution")
    t.append_bytes(b"prev", prev_hash)
    t.append_bytes(b"contributor", contributor)
    for label in sorted(public_keys):
        pk = public_keys[label]
        t.append_bytes(b"pk", label)
        t.append_point(b"g1_s", pk.g1_s)
        t.append_point(b"g1_sx", pk.g1_sx)
        t.append_point(b"g2_spx", pk.g2_spx)
    for name in sorted(points):
        t.append_bytes(b"point", name)
        t.append_point(b"", points[name])
    t.append_bytes(b"state", state_digest)
    return t.hexdigest()


def replay_chain(initial_hash, contributions, head, state_digest):
    """체인을 처음부터 다시 계산해 저장된 헤드와 상태를 확인한다.

    Args:
        initial_hash: 체인의 시작 해시
        contributions: 저장된 기여 목록
        head: 저장된 트랜스크립트 해시
        state_digest: 현재 상태로부터 다시 계산한 다이제스트

    Raises:
        BrokenChain: 연결, 해시, 헤드, 상태 중 하나라도 맞지 않을 때
    """
    expected_prev = initial_hash
    for i, contribution in enumerate(contributions):
        if contribution.prev_hash != expected_prev:
            raise BrokenChain(f"contribution {i} does not extend {expected_prev[:16]}...")
        if contribution.recompute_hash() != contribution.hash:
            raise BrokenChain(f"contribution {i} ({contribution.contributor!r}) hash mismatch")
        expected_prev = contribution.hash
    if head != expected_prev:
        raise BrokenChain(f"stored head {head[:16]}... is not the chain head")
    if contributions and contributions[-1].state_digest != state_digest:
        raise BrokenChain("stored state does not match the last contribution")
    logger.debug(f"replayed {len(contributions)} contribution(s), head {head[:16]}...")
    return head


def points_match(contribution, points):
    return all(ec_eq(contribution.points[name], point) for name, point in points.items())
