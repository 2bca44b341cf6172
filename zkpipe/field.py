"""
기반 모듈: 유한체(Finite Field) 및 타원곡선 연산
==================================================

신뢰 설정(trusted setup), 키 유도, 증명, 검증 전 단계에서 사용되는
기본 대수 도구를 정의한다.

**유한체 FR**:
  bn128 곡선의 스칼라 필드. 위트니스, 다항식 계수, 기여자 비밀값은
  모두 FR 원소이다.
  - p - 1 = 2^28 × m (m은 홀수) → 최대 2^28 크기의 평가 도메인을 지원

**타원곡선 연산**:
  py_ecc 의 optimized_bn128 (사영 좌표) 을 사용한다.
  G1 점은 (x, y, z) FQ 튜플, G2 점은 (x, y, z) FQ2 튜플이며
  무한원점은 z == 0 이다.

**그룹 FFT**:
  Powers of Tau 를 Lagrange 기저로 바꿀 때 [τ^i] 벡터에
  IFFT 를 적용한다. 필드 FFT 와 같은 버터플라이 구조에서
  덧셈/곱셈만 그룹 연산으로 바뀐다.

사용 예시:
    >>> from zkpipe.field import FR, G1, ec_mul
    >>> P = ec_mul(G1, FR(5))  # 5·G1
"""

from py_ecc.fields import bn128_FQ as FQ
from py_ecc import optimized_bn128 as bn128


class FR(FQ):
    """bn128 스칼라 필드 위의 유한체 원소."""
    field_modulus = bn128.curve_order


CURVE_ORDER = bn128.curve_order
FIELD_MODULUS = bn128.field_modulus

# 2-adicity: p - 1 = 2^28 · m
MAX_TWO_ADICITY = 28

G1 = bn128.G1
G2 = bn128.G2
Z1 = bn128.Z1
Z2 = bn128.Z2

FQ2 = bn128.FQ2
FQ12 = bn128.FQ12


# ─────────────────────────────────────────────────────────────────────
# 타원곡선 연산
# ─────────────────────────────────────────────────────────────────────

def ec_mul(point, scalar):
    """타원곡선 스칼라 곱셈: scalar · point (scalar 는 FR 로 축약)."""
    return bn128.multiply(point, int(scalar) % CURVE_ORDER)


def ec_add(p1, p2):
    return bn128.add(p1, p2)


def ec_neg(point):
    return bn128.neg(point)


def ec_eq(p1, p2):
    return bn128.eq(p1, p2)


def is_inf(point):
    return bn128.is_inf(point)


def is_g2(point):
    return isinstance(point[0], FQ2)


def g1_point(x, y):
    """아핀 좌표 정수 (x, y) → 사영 G1 점. 곡선 검사는 하지 않는다."""
    return (bn128.FQ(x), bn128.FQ(y), bn128.FQ.one())


def g2_point(x, y):
    """아핀 좌표 ([x0, x1], [y0, y1]) → 사영 G2 점. 곡선 검사는 하지 않는다."""
    return (FQ2(list(x)), FQ2(list(y)), FQ2.one())


def normalize(point):
    """사영 좌표 → 아핀 좌표 (x, y). 무한원점은 None."""
    if is_inf(point):
        return None
    return bn128.normalize(point)


def ec_lincomb(points, scalars, zero):
    """다중 스칼라 곱 Σ scalars[i] · points[i].

    0 스칼라는 건너뛴다 (R1CS 행렬은 대부분 0).
    """
    acc = zero
    for point, scalar in zip(points, scalars):
        s = int(scalar) % CURVE_ORDER
        if s == 0:
            continue
        acc = ec_add(acc, bn128.multiply(point, s))
    return acc


def is_valid_g1(point):
    """곡선 위의 점인지 확인. G1 은 cofactor 가 1 이므로 곡선 검사로 충분하다."""
    return bn128.is_on_curve(point, bn128.b)


def is_valid_g2(point):
    """곡선 위의 점이며 위수 r 부분군에 속하는지 확인."""
    if not bn128.is_on_curve(point, bn128.b2):
        return False
    return is_inf(bn128.multiply(point, CURVE_ORDER))


def pairing_product_is_one(pairs):
    """Π e(g1_i, g2_i) == 1 인지 확인한다.

    최종 지수승(final exponentiation)을 한 번만 수행하도록
    Miller loop 결과를 먼저 곱한다.

    Args:
        pairs: [(G1 점, G2 점), ...]

    Returns:
        bool
    """
    acc = FQ12.one()
    for g1_point, g2_point in pairs:
        if is_inf(g1_point) or is_inf(g2_point):
            continue
        acc = acc * bn128.pairing(g2_point, g1_point, final_exponentiate=False)
    return bn128.final_exponentiate(acc) == FQ12.one()


def same_ratio(g1_a, g1_b, g2_a, g2_b):
    """e(g1_a, g2_b) == e(g1_b, g2_a): 두 쌍이 같은 비율(비밀값)을 공유하는지 검사.

    g1_b = x·g1_a 이고 g2_b = x·g2_a 이면 참이다.
    """
    if is_inf(g1_a) or is_inf(g1_b) or is_inf(g2_a) or is_inf(g2_b):
        return False
    return pairing_product_is_one([(g1_a, g2_b), (ec_neg(g1_b), g2_a)])


# ─────────────────────────────────────────────────────────────────────
# 단위근 (Roots of Unity)
# ─────────────────────────────────────────────────────────────────────

def get_root_of_unity(n):
    """n차 원시 단위근 ω 를 반환한다.

    생성자 g = FR(5) 에서 ω = g^((p-1)/n).

    Raises:
        ValueError: n 이 2의 거듭제곱이 아니거나 2^28 을 초과할 때
    """
    if n < 1 or (n & (n - 1)) != 0:
        raise ValueError(f"n must be a power of two: {n}")
    if n > (1 << MAX_TWO_ADICITY):
        raise ValueError(f"n must not exceed 2^{MAX_TWO_ADICITY}: {n}")
    if n == 1:
        return FR(1)
    return FR(5) ** ((CURVE_ORDER - 1) // n)


def next_power_of_2(n):
    p = 1
    while p < n:
        p *= 2
    return p


# ─────────────────────────────────────────────────────────────────────
# 그룹 FFT
# ─────────────────────────────────────────────────────────────────────

def ec_fft(points, omega):
    """그룹 원소 벡터에 대한 radix-2 FFT.

    계수 자리에 그룹 원소 [c_j] 가 오고 결과는 [Σ_j c_j·ω^{jk}] 이다.
    """
    n = len(points)
    if n == 1:
        return [points[0]]

    omega_sq = omega * omega
    even_vals = ec_fft(points[0::2], omega_sq)
    odd_vals = ec_fft(points[1::2], omega_sq)

    result = [None] * n
    omega_k = FR(1)
    half = n // 2
    for k in range(half):
        t = ec_mul(odd_vals[k], omega_k)
        result[k] = ec_add(even_vals[k], t)
        result[k + half] = ec_add(even_vals[k], ec_neg(t))
        omega_k = omega_k * omega
    return result


def ec_ifft(points, omega):
    """그룹 원소 벡터에 대한 역 FFT.

    points = [τ^0·G, τ^1·G, ..., τ^{n-1}·G] 이면
    결과는 도메인 {ω^k} 의 Lagrange 기저 [L_k(τ)·G] 가 된다.
    """
    n = len(points)
    values = ec_fft(points, FR(1) / omega)
    n_inv = FR(1) / FR(n)
    return [ec_mul(p, n_inv) for p in values]
