"""
ConstraintSystem / CircuitBuilder tests
"""
import pytest

from zkpipe.circuit import ConstraintSystem, CircuitBuilder, ONE
from zkpipe.errors import UnsatisfiedConstraints
from zkpipe.field import FR


class TestSumOfSquares:
    def test_wire_order(self, cs):
        assert cs.signals[0] == ONE
        assert cs.public_signal_names == ["c"]
        assert cs.n_public == 1
        assert set(cs.inputs) == {"a", "b"}

    def test_shape(self, cs):
        assert cs.n_constraints == 3
        # 3 제약 + 공개 신호 행 2개 → 8
        assert cs.domain_size == 8
        assert len(cs.qap_rows()) == 5

    def test_public_output(self, cs):
        w = cs.evaluate({"a": 3, "b": 4})
        assert cs.public_signals(w) == [8]
        assert w[cs.index_of("q")] == FR(1)

    def test_decimal_string_inputs(self, cs):
        w = cs.evaluate({"a": "5", "b": "6"})
        assert cs.public_signals(w) == [(25 + 36) % 17]

    @pytest.mark.parametrize("a,b", [(0, 0), (16, 16), (100, 3)])
    def test_modulus(self, cs, a, b):
        w = cs.evaluate({"a": a, "b": b})
        assert cs.public_signals(w) == [(a * a + b * b) % 17]

    @pytest.mark.parametrize("assignment", [
        {"a": 3, "b": 4, "c": 9},
        {"a": 3, "b": 4, "c": 25, "q": 0},
        {"a": 3, "b": 4, "q": 0},
        {"a": 3, "b": 4, "a2": 9},
    ])
    def test_output_cannot_be_assigned(self, cs, assignment):
        """출력과 중간 신호는 입력으로 받지 않는다."""
        with pytest.raises(UnsatisfiedConstraints):
            cs.evaluate(assignment)

    def test_unsatisfied_rows(self, cs):
        w = cs.compute_witness({"a": 3, "b": 4})
        w[cs.index_of("c")] = FR(9)
        assert cs.unsatisfied_rows(w) == [2]

    def test_missing_input(self, cs):
        with pytest.raises(UnsatisfiedConstraints):
            cs.evaluate({"a": 3})

    def test_unknown_signal(self, cs):
        with pytest.raises(UnsatisfiedConstraints):
            cs.evaluate({"a": 3, "b": 4, "z": 1})

    def test_not_a_number(self, cs):
        with pytest.raises(UnsatisfiedConstraints):
            cs.evaluate({"a": "three", "b": 4})

    def test_unsatisfied_is_value_error(self, cs):
        with pytest.raises(ValueError):
            cs.evaluate({"a": 3})


class TestContentHash:
    def test_stable(self, cs):
        assert cs.content_hash() == ConstraintSystem.sum_of_squares_mod(17).content_hash()

    def test_modulus_changes_hash(self, cs):
        assert cs.content_hash() != ConstraintSystem.sum_of_squares_mod(19).content_hash()

    def test_different_circuit(self, cs):
        assert cs.content_hash() != ConstraintSystem.cubic().content_hash()


class TestBuilder:
    def test_cubic(self):
        cubic = ConstraintSystem.cubic()
        w = cubic.evaluate({"x": 3})
        assert cubic.public_signals(w) == [35]

    def test_public_input_order(self):
        builder = CircuitBuilder("scaled")
        builder.input("k", public=True)
        builder.input("x")
        builder.output("y")
        builder.mul("k", "x", "y")
        scaled = builder.build()
        assert scaled.public_signal_names == ["y", "k"]
        w = scaled.evaluate({"k": 3, "x": 5})
        assert scaled.public_signals(w) == [15, 3]

    def test_undeclared_signal(self):
        builder = CircuitBuilder("bad")
        with pytest.raises(ValueError):
            builder.mul("x", "x", "y")

    def test_redeclare_with_other_kind(self):
        builder = CircuitBuilder("bad")
        builder.input("x")
        with pytest.raises(ValueError):
            builder.output("x")
