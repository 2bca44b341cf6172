"""
파이프라인 오류 분류
=====================

  (a) 세레모니 상태 오류: 호출자가 올바른 상태로 재시도하면 복구된다.
      영속 데이터는 절대 손상되지 않는다.
  (b) 바인딩 오류: 서로 다른 단계의 산출물이 맞지 않는다.
      현재 호출만 실패한다.
  (c) 입력 데이터 오류: 파이프라인이 아니라 입력 자체가 잘못되었다.

검증 결과가 False 인 것은 오류가 아니라 정상적인 결과이다.
모든 말단 오류는 ValueError 도 상속한다.
"""


class PipelineError(Exception):
    """모든 파이프라인 오류의 기반 클래스."""


class CeremonyStateError(PipelineError, ValueError):
    pass


class BindingError(PipelineError, ValueError):
    pass


class InputError(PipelineError, ValueError):
    pass


class InvalidDegree(PipelineError, ValueError):
    """Powers of Tau 지수가 0 이하이거나 지원 최대치를 넘는다."""


# ── (a) 세레모니 상태 ──

class WrongPhase(CeremonyStateError):
    """요청한 연산이 현재 단계(phase)에서 허용되지 않는다."""


class PhaseMismatch(WrongPhase):
    """다음 단계가 기대하는 phase 의 산출물이 아니다."""


class StaleBase(CeremonyStateError):
    """기여가 기대한 이전 해시가 저장소의 현재 해시와 다르다."""

    def __init__(self, expected, actual):
        super().__init__(
            f"stale base: expected transcript {expected}, store is at {actual}"
        )
        self.expected = expected
        self.actual = actual


class EmptyCeremony(CeremonyStateError):
    """기여 수가 0 (또는 정책상 최소치 미만) 인 상태로 마무리하려 했다."""

    def __init__(self, count, required=1, what="accumulator"):
        super().__init__(
            f"{what} has {count} contribution(s), at least {required} required"
        )
        self.count = count
        self.required = required


class EmptyKeyCeremony(EmptyCeremony):
    def __init__(self, count, required=1):
        super().__init__(count, required, what="proving key")


class InsufficientEntropy(CeremonyStateError):
    pass


class BrokenChain(CeremonyStateError):
    """기여 해시 체인을 재생했을 때 저장된 값과 일치하지 않는다."""


# ── (b) 바인딩 ──

class CircuitMismatch(BindingError):
    pass


class DegreeExceeded(BindingError):
    pass


class ArityMismatch(BindingError):
    pass


# ── (c) 입력 데이터 ──

class UnsatisfiedConstraints(InputError):
    """위트니스가 제약 시스템을 만족하지 않는다. 증명은 생성되지 않는다."""

    def __init__(self, message, rows=None):
        super().__init__(message)
        self.rows = rows or []


class MalformedProof(InputError):
    pass


class MalformedKey(InputError):
    pass
