"""
제약 시스템 (R1CS) 과 위트니스 계산
=====================================

컴파일된 산술 회로를 표현한다. 회로 컴파일러 자체는 범위 밖이며,
여기서는 작은 빌더로 이미 "컴파일된" 결과물을 직접 만든다.

**R1CS 행**:
  각 제약은 세 선형결합 (A, B, C) 로 ⟨A,w⟩·⟨B,w⟩ = ⟨C,w⟩ 를 뜻한다.
  선형결합은 {배선 인덱스: 계수} 딕셔너리이다.

**배선 순서**:
  | 인덱스     | 내용                       |
  |------------|----------------------------|
  | 0          | 상수 1 ("one")             |
  | 1..l       | 공개 출력, 공개 입력       |
  | l+1..      | 비공개 입력, 중간 신호     |

**위트니스 프로그램**:
  입력 신호 값에서 나머지 신호를 채우는 단계 목록. 몫/나머지처럼
  제약으로 직접 계산할 수 없는 값(hint)도 여기서 구한다.
  호출자는 입력 신호만 넘길 수 있다. 출력과 중간 신호는 항상
  프로그램이 계산하므로 공개 출력을 호출자가 정할 수 없다.

**예제 회로**: c = (a² + b²) mod p  (p = 17)
  | 제약 | A    | B      | C              |
  |------|------|--------|----------------|
  | 0    | a    | a      | a2             |
  | 1    | b    | b      | b2             |
  | 2    | q    | 17·one | a2 + b2 - c    |

사용 예시:
    >>> cs = ConstraintSystem.sum_of_squares_mod(17)
    >>> w = cs.evaluate({"a": 3, "b": 4})
    >>> cs.public_signals(w)  # [8]
"""

from zkpipe.errors import UnsatisfiedConstraints
from zkpipe.field import FR, next_power_of_2
from zkpipe.transcript import Transcript

ONE = "one"

OUTPUT = "output"
PUBLIC_INPUT = "public_input"
PRIVATE_INPUT = "input"
INTERNAL = "internal"


def _eval_lc(lc, values):
    total = FR(0)
    for wire, coeff in lc.items():
        total = total + values[wire] * FR(coeff)
    return total


def _step_mul(args, values):
    return _eval_lc(args[0], values) * _eval_lc(args[1], values)


def _step_lc(args, values):
    return _eval_lc(args[0], values)


def _step_div(args, values):
    return FR(int(_eval_lc(args[0], values)) // args[1])


def _step_mod(args, values):
    return FR(int(_eval_lc(args[0], values)) % args[1])


STEP_OPS = {
    "mul": _step_mul,
    "lc": _step_lc,
    "div": _step_div,
    "mod": _step_mod,
}


class ConstraintSystem:
    """컴파일된 R1CS 제약 시스템. 생성 후 변경하지 않는다.

    속성:
        name: 회로 이름
        signals: 배선 순서의 신호 이름 리스트 (signals[0] == "one")
        n_outputs: 공개 출력 수
        n_public: 공개 신호 수 (출력 + 공개 입력)
        inputs: 호출자가 반드시 제공해야 하는 입력 신호 이름
        constraints: [(A, B, C), ...] 각 원소는 {배선: 계수}
        program: [(op, 대상 배선, args), ...]
    """

    def __init__(self, name, signals, n_outputs, n_public, inputs, constraints, program):
        self.name = name
        self.signals = list(signals)
        self.n_outputs = n_outputs
        self.n_public = n_public
        self.inputs = list(inputs)
        self.constraints = [
            (dict(a), dict(b), dict(c)) for a, b, c in constraints
        ]
        self.program = [(op, target, list(args)) for op, target, args in program]
        self._index = {name: i for i, name in enumerate(self.signals)}
        self._inputs = set(self.inputs)
        self._hash = None

    @property
    def n_wires(self):
        return len(self.signals)

    @property
    def n_constraints(self):
        return len(self.constraints)

    @property
    def domain_size(self):
        """QAP 평가 도메인 크기.

        공개 신호마다 (one 포함) A 에만 1 이 있는 행을 추가하므로
        n_constraints + n_public + 1 행을 담을 2의 거듭제곱이다.
        """
        return next_power_of_2(self.n_constraints + self.n_public + 1)

    @property
    def public_signal_names(self):
        return self.signals[1:self.n_public + 1]

    def index_of(self, name):
        return self._index[name]

    def qap_rows(self):
        """QAP 변환에 쓰이는 행 목록: 원래 제약 + 공개 신호 독립성 행."""
        rows = list(self.constraints)
        for wire in range(self.n_public + 1):
            rows.append(({wire: 1}, {}, {}))
        return rows

    def content_hash(self):
        """제약 배치의 BLAKE2b 해시 (hex). 같은 R1CS 는 같은 해시를 갖는다."""
        if self._hash is None:
            t = Transcript(b"zkpipe.r1cs")
            t.append_int(b"wires", self.n_wires)
            t.append_int(b"public", self.n_public)
            for name in self.signals:
                t.append_bytes(b"signal", name)
            t.append_int(b"constraints", self.n_constraints)
            for row in self.constraints:
                for lc in row:
                    t.append_int(b"terms", len(lc))
                    for wire in sorted(lc):
                        t.append_int(b"w", wire)
                        t.append_scalar(b"c", lc[wire])
            self._hash = t.hexdigest()
        return self._hash

    # ── 위트니스 ──

    def compute_witness(self, assignment):
        """입력 신호 값에서 전체 위트니스 벡터를 계산한다.

        Args:
            assignment: {신호 이름: 값} (정수 또는 10진 문자열)

        Returns:
            list[FR]: 배선 순서의 위트니스

        Raises:
            UnsatisfiedConstraints: 입력 누락, 입력이 아닌 신호, 숫자가 아닌 값
        """
        values = [None] * self.n_wires
        values[0] = FR(1)

        for name, raw in assignment.items():
            if name not in self._index or name == ONE:
                raise UnsatisfiedConstraints(f"unknown signal '{name}'")
            if name not in self._inputs:
                raise UnsatisfiedConstraints(
                    f"signal '{name}' is computed by the circuit, not an input"
                )
            try:
                values[self._index[name]] = FR(int(raw))
            except (TypeError, ValueError):
                raise UnsatisfiedConstraints(
                    f"signal '{name}' is not a field element: {raw!r}"
                )

        missing = [name for name in self.inputs if name not in assignment]
        if missing:
            raise UnsatisfiedConstraints(f"missing input signal(s): {', '.join(missing)}")

        for op, target, args in self.program:
            values[target] = STEP_OPS[op](args, values)

        unassigned = [self.signals[i] for i, v in enumerate(values) if v is None]
        if unassigned:
            raise UnsatisfiedConstraints(f"unassigned signal(s): {', '.join(unassigned)}")
        return values

    def unsatisfied_rows(self, witness):
        rows = []
        for k, (a, b, c) in enumerate(self.constraints):
            if _eval_lc(a, witness) * _eval_lc(b, witness) != _eval_lc(c, witness):
                rows.append(k)
        return rows

    def evaluate(self, assignment):
        """위트니스를 계산하고 모든 제약을 검사한다."""
        witness = self.compute_witness(assignment)
        rows = self.unsatisfied_rows(witness)
        if rows:
            raise UnsatisfiedConstraints(
                f"witness violates constraint(s) {rows} of circuit '{self.name}'",
                rows=rows,
            )
        return witness

    def public_signals(self, witness):
        return [int(v) for v in witness[1:self.n_public + 1]]

    def __repr__(self):
        return (f"ConstraintSystem({self.name!r}, wires={self.n_wires}, "
                f"constraints={self.n_constraints}, public={self.n_public})")

    # ── 예제 회로 ──

    @classmethod
    def sum_of_squares_mod(cls, modulus=17):
        """c = (a² + b²) mod p. a, b 는 비공개 입력, c 는 공개 출력."""
        builder = CircuitBuilder(f"sum_of_squares_mod_{modulus}")
        builder.input("a")
        builder.input("b")
        builder.output("c")
        builder.mul("a", "a", "a2")
        builder.mul("b", "b", "b2")
        builder.divmod({"a2": 1, "b2": 1}, modulus, quotient="q", remainder="c")
        return builder.build()

    @classmethod
    def cubic(cls):
        """out = x³ + x + 5."""
        builder = CircuitBuilder("cubic")
        builder.input("x")
        builder.output("out")
        builder.mul("x", "x", "x2")
        builder.mul("x2", "x", "x3")
        builder.linear({"x3": 1, "x": 1, ONE: 5}, "out")
        return builder.build()


class CircuitBuilder:
    """이름 기반으로 제약과 위트니스 프로그램을 쌓은 뒤 배선 순서를 정한다."""

    def __init__(self, name):
        self.name = name
        self._kinds = {ONE: ONE}
        self._declared = [ONE]
        self._constraints = []
        self._program = []

    def _declare(self, name, kind):
        if name in self._kinds:
            if kind != INTERNAL and self._kinds[name] != kind:
                raise ValueError(f"signal '{name}' already declared as {self._kinds[name]}")
            return name
        self._kinds[name] = kind
        self._declared.append(name)
        return name

    def _lc(self, value):
        if isinstance(value, str):
            if value not in self._kinds:
                raise ValueError(f"undeclared signal '{value}'")
            return {value: 1}
        for name in value:
            if name not in self._kinds:
                raise ValueError(f"undeclared signal '{name}'")
        return dict(value)

    def input(self, name, public=False):
        return self._declare(name, PUBLIC_INPUT if public else PRIVATE_INPUT)

    def output(self, name):
        return self._declare(name, OUTPUT)

    def mul(self, left, right, out):
        """out = left · right"""
        a, b = self._lc(left), self._lc(right)
        self._declare(out, INTERNAL)
        self._constraints.append((a, b, {out: 1}))
        self._program.append(("mul", out, [a, b]))
        return out

    def linear(self, lc, out):
        """out = Σ coeff · signal  (B = one 인 제약 하나)"""
        lc = self._lc(lc)
        self._declare(out, INTERNAL)
        self._constraints.append((lc, {ONE: 1}, {out: 1}))
        self._program.append(("lc", out, [lc]))
        return out

    def divmod(self, lc, modulus, quotient, remainder):
        """quotient · modulus = lc - remainder.

        몫과 나머지는 정수 나눗셈 hint 로 계산된다.
        """
        lc = self._lc(lc)
        self._declare(quotient, INTERNAL)
        self._declare(remainder, INTERNAL)
        c = dict(lc)
        c[remainder] = c.get(remainder, 0) - 1
        self._constraints.append(({quotient: 1}, {ONE: modulus}, c))
        self._program.append(("div", quotient, [lc, modulus]))
        self._program.append(("mod", remainder, [lc, modulus]))
        return quotient, remainder

    def build(self):
        order = [ONE]
        for kind in (OUTPUT, PUBLIC_INPUT, PRIVATE_INPUT, INTERNAL):
            order.extend(n for n in self._declared if self._kinds[n] == kind)
        index = {name: i for i, name in enumerate(order)}

        def remap(lc):
            return {index[name]: coeff for name, coeff in lc.items()}

        n_outputs = sum(1 for n in order if self._kinds[n] == OUTPUT)
        n_public = n_outputs + sum(1 for n in order if self._kinds[n] == PUBLIC_INPUT)
        inputs = [n for n in order if self._kinds[n] in (PUBLIC_INPUT, PRIVATE_INPUT)]

        constraints = [(remap(a), remap(b), remap(c)) for a, b, c in self._constraints]
        program = []
        for op, target, args in self._program:
            program.append((op, index[target],
                            [remap(arg) if isinstance(arg, dict) else arg for arg in args]))

        return ConstraintSystem(self.name, order, n_outputs, n_public, inputs,
                                constraints, program)
