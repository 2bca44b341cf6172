import logging
import secrets

from zkpipe.errors import PhaseMismatch, UnsatisfiedConstraints
from zkpipe.field import (
    FR, Z1, Z2,
    ec_add, ec_eq, ec_mul, ec_neg, ec_lincomb, get_root_of_unity,
)
from zkpipe.polynomial import Polynomial

logger = logging.getLogger(__name__)


class Proof:
    """Groth16 증명 (A ∈ G1, B ∈ G2, C ∈ G1)."""

    protocol = "groth16"
    curve = "bn128"

    def __init__(self, a, b, c):
        self.a = a
        self.b = b
        self.c = c

    def __eq__(self, other):
        if not isinstance(other, Proof):
            return False
        return ec_eq(self.a, other.a) and ec_eq(self.b, other.b) and ec_eq(self.c, other.c)

    def __repr__(self):
        return "Proof(groth16, bn128)"


def _row_values(lcs, witness, n):
    values = []
    for lc in lcs:
        total = FR(0)
        for wire, coeff in lc.items():
            total = total + witness[wire] * FR(coeff)
        values.append(total)
    return values + [FR(0)] * (n - len(values))


def hx_coeffs(constraint_system, witness, n):
    """h(x) = (a(x)·b(x) - c(x)) / Z(x) 의 계수 (길이 n - 1)."""
    rows = constraint_system.qap_rows()
    omega = get_root_of_unity(n)
    ax = Polynomial.from_evaluations(_row_values([r[0] for r in rows], witness, n), omega)
    bx = Polynomial.from_evaluations(_row_values([r[1] for r in rows], witness, n), omega)
    cx = Polynomial.from_evaluations(_row_values([r[2] for r in rows], witness, n), omega)
    try:
        hx = (ax * bx - cx).divide_by_vanishing(n)
    except ValueError:
        raise UnsatisfiedConstraints("a(x)·b(x) - c(x) is not divisible by Z(x)")
    coeffs = list(hx.coeffs)
    return coeffs + [FR(0)] * (n - 1 - len(coeffs))


def proof_a(key_set, witness, r):
    proof_A = ec_add(key_set.alpha_g1, ec_lincomb(key_set.a_query, witness, Z1))
    return ec_add(proof_A, ec_mul(key_set.delta_g1, r))


def proof_b(key_set, witness, s):
    proof_B = ec_add(key_set.beta_g2, ec_lincomb(key_set.b2_query, witness, Z2))
    return ec_add(proof_B, ec_mul(key_set.delta_g2, s))


def proof_c(key_set, witness, hx, r, s, prf_A):
    # G1 쪽 B (C 계산에만 쓰인다)
    temp_proof_B = ec_add(key_set.beta_g1, ec_lincomb(key_set.b1_query, witness, Z1))
    temp_proof_B = ec_add(temp_proof_B, ec_mul(key_set.delta_g1, s))

    private = witness[key_set.n_public + 1:]
    proof_C = ec_lincomb(key_set.l_query, private, Z1)
    proof_C = ec_add(proof_C, ec_lincomb(key_set.h_query, hx, Z1))
    proof_C = ec_add(proof_C, ec_mul(prf_A, s))
    proof_C = ec_add(proof_C, ec_mul(temp_proof_B, r))
    proof_C = ec_add(proof_C, ec_neg(ec_mul(key_set.delta_g1, r * s)))
    return proof_C


def _blinding(rng):
    return FR(rng.randrange(1, FR.field_modulus))


def prove(key_set, witness, rng=None):
    """위트니스에 대한 Groth16 증명을 생성한다.

    Args:
        key_set: 마무리되고 최소 한 번 기여된 ProvingKeySet
        witness: {신호 이름: 값}
        rng: 블라인딩 r, s 를 뽑을 난수 생성기 (randrange 지원).
             기본값은 secrets.SystemRandom()

    Returns:
        (Proof, list[int]): 증명과 공개 신호

    Raises:
        PhaseMismatch: 키가 마무리되지 않았거나 기여가 없을 때
        UnsatisfiedConstraints: 위트니스가 제약을 만족하지 않을 때
    """
    if not key_set.finalized:
        raise PhaseMismatch("proving requires a finalized proving key")
    if not key_set.contributions:
        raise PhaseMismatch("proving key has no contributions")

    cs = key_set.constraint_system
    w = cs.evaluate(witness)
    if rng is None:
        rng = secrets.SystemRandom()
    r = _blinding(rng)
    s = _blinding(rng)

    hx = hx_coeffs(cs, w, key_set.domain_size)
    prf_A = proof_a(key_set, w, r)
    prf_B = proof_b(key_set, w, s)
    prf_C = proof_c(key_set, w, hx, r, s, prf_A)

    public = cs.public_signals(w)
    logger.info(f"generated proof for {cs.name!r}, public signals {public}")
    return Proof(prf_A, prf_B, prf_C), public
