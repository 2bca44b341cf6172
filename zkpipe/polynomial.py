"""
몫 다항식 계산용 다항식과 FFT
==============================

**QAP 관점**:
  R1CS 의 k번째 행은 평가 도메인의 점 ω^k 에 대응한다.
  위트니스 w 에 대해
    a(ω^k) = Σ_i A[k][i]·w_i,  b(ω^k), c(ω^k) 도 같은 방식
  이고, 모든 행이 만족되면 a(x)·b(x) - c(x) 는 Z(x) = x^n - 1 로
  나누어 떨어진다. 그 몫이 h(x) 이다.

**Z(x) 로 나누기**:
  x^n ≡ 1 (mod Z) 이므로 최고차 계수 c·x^i 를 몫의 c·x^(i-n) 으로 옮기고
  나머지의 x^(i-n) 항에 c 를 더하면 된다. 일반 긴 나눗셈이 필요 없다.

사용 예시:
    >>> ax = Polynomial.from_evaluations(a_values, omega)
    >>> hx = (ax * bx - cx).divide_by_vanishing(n)
"""

from zkpipe.field import FR


class Polynomial:
    """FR 계수 다항식. coeffs = [c₀, c₁, ...] → c₀ + c₁x + ..."""

    def __init__(self, coeffs=None):
        self.coeffs = [c if isinstance(c, FR) else FR(c) for c in coeffs or []] or [FR(0)]
        while len(self.coeffs) > 1 and self.coeffs[-1] == FR(0):
            self.coeffs.pop()

    def evaluate(self, point):
        """Horner's method 로 p(point) 를 계산한다."""
        result = FR(0)
        for coeff in reversed(self.coeffs):
            result = result * point + coeff
        return result

    def __sub__(self, other):
        size = max(len(self.coeffs), len(other.coeffs))
        left = self.coeffs + [FR(0)] * (size - len(self.coeffs))
        right = other.coeffs + [FR(0)] * (size - len(other.coeffs))
        return Polynomial([a - b for a, b in zip(left, right)])

    def __mul__(self, other):
        result = [FR(0)] * (len(self.coeffs) + len(other.coeffs) - 1)
        for i, a in enumerate(self.coeffs):
            if a == FR(0):
                continue
            for j, b in enumerate(other.coeffs):
                result[i + j] = result[i + j] + a * b
        return Polynomial(result)

    def __eq__(self, other):
        return isinstance(other, Polynomial) and self.coeffs == other.coeffs

    def divide_by_vanishing(self, n):
        """Z(x) = x^n - 1 로 나눈 몫.

        Raises:
            ValueError: 나머지가 0이 아닌 경우 (제약 불만족)
        """
        rem = list(self.coeffs)
        quotient = [FR(0)] * max(len(rem) - n, 0)
        for i in range(len(rem) - 1, n - 1, -1):
            quotient[i - n] = rem[i]
            rem[i - n] = rem[i - n] + rem[i]
        if any(c != FR(0) for c in rem[:n]):
            raise ValueError("polynomial is not divisible by the vanishing polynomial")
        return Polynomial(quotient)

    @classmethod
    def vanishing(cls, n):
        """소거 다항식 Z(x) = x^n - 1."""
        return cls([FR(-1)] + [FR(0)] * (n - 1) + [FR(1)])

    @classmethod
    def from_evaluations(cls, evals, omega):
        """도메인 {1, ω, ..., ω^(n-1)} 위의 평가값에서 다항식을 복원한다 (IFFT)."""
        return cls(ifft(evals, omega))


def fft(values, omega):
    """radix-2 FFT: 계수 → [p(1), p(ω), ..., p(ω^{n-1})]."""
    n = len(values)
    if n == 1:
        return [FR(values[0])]
    even = fft(values[0::2], omega * omega)
    odd = fft(values[1::2], omega * omega)
    result = [FR(0)] * n
    w = FR(1)
    for k in range(n // 2):
        t = w * odd[k]
        result[k] = even[k] + t
        result[k + n // 2] = even[k] - t
        w = w * omega
    return result


def ifft(evals, omega):
    """ω^{-1} 로 FFT 를 수행한 뒤 n 으로 나눈다."""
    n_inv = FR(1) / FR(len(evals))
    return [c * n_inv for c in fft(evals, FR(1) / omega)]
