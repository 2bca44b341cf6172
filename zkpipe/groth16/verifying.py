import logging

from zkpipe.errors import ArityMismatch
from zkpipe.field import (
    CURVE_ORDER,
    ec_add, ec_mul, ec_neg, is_valid_g1, is_valid_g2, pairing_product_is_one,
)
from zkpipe.serializers import deserialize_proof, deserialize_public, deserialize_vk

logger = logging.getLogger(__name__)


def vk_x(vk, public_signals):
    """IC[0] + Σ public_i · IC[i+1]"""
    acc = vk.ic[0]
    for i, value in enumerate(public_signals):
        acc = ec_add(acc, ec_mul(vk.ic[i + 1], value))
    return acc


def lhs_rhs_pairs(vk, public_signals, proof):
    # e(-A, B) · e(α, β) · e(vk_x, γ) · e(C, δ) == 1
    return [
        (ec_neg(proof.a), proof.b),
        (vk.alpha_g1, vk.beta_g2),
        (vk_x(vk, public_signals), vk.gamma_g2),
        (proof.c, vk.delta_g2),
    ]


def verify(vk, public_signals, proof):
    """Groth16 증명을 검증한다.

    Args:
        vk: VerificationKey 또는 snarkjs verification_key.json dict
        public_signals: 공개 신호 (int 또는 10진 문자열) 리스트
        proof: Proof, snarkjs proof.json dict 또는 256 바이트

    Returns:
        bool: 증명이 유효하면 True. 곡선/부분군 밖의 점, 필드 밖의 공개 값,
        페어링 검사 실패는 모두 False.

    Raises:
        MalformedKey, MalformedProof: 구조가 잘못된 입력
        ArityMismatch: 공개 신호 개수가 nPublic 과 다를 때
    """
    vk = deserialize_vk(vk)
    proof = deserialize_proof(proof)
    public = deserialize_public(public_signals)

    if len(public) != vk.n_public:
        raise ArityMismatch(f"expected {vk.n_public} public signal(s), got {len(public)}")

    for i, value in enumerate(public):
        if not 0 <= value < CURVE_ORDER:
            logger.warning(f"public signal {i} is outside the scalar field")
            return False

    if not (is_valid_g1(proof.a) and is_valid_g2(proof.b) and is_valid_g1(proof.c)):
        logger.warning("proof contains a point outside the curve group")
        return False
    if not (is_valid_g1(vk.alpha_g1) and all(is_valid_g1(p) for p in vk.ic)
            and is_valid_g2(vk.beta_g2) and is_valid_g2(vk.gamma_g2)
            and is_valid_g2(vk.delta_g2)):
        logger.warning("verification key contains a point outside the curve group")
        return False

    ok = pairing_product_is_one(lhs_rhs_pairs(vk, public, proof))
    if ok:
        logger.info(f"proof verified for public signals {public}")
    else:
        logger.warning(f"proof rejected for public signals {public}")
    return ok
