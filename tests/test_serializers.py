"""
Serializer tests

snarkjs 호환 인코딩과 저장용 dict 변환을 확인한다.
"""

import json
import pytest

from zkpipe.errors import MalformedKey, MalformedProof
from zkpipe.field import FIELD_MODULUS, FR, G1, G2, Z1, Z2, ec_eq, ec_mul, is_inf
from zkpipe.groth16 import accumulator as accumulators
from zkpipe.groth16 import keys
from zkpipe.groth16.proving import Proof
from zkpipe.serializers import (
    PROOF_SIZE,
    deserialize_accumulator,
    deserialize_constraint_system,
    deserialize_fr,
    deserialize_g1,
    deserialize_g2,
    deserialize_key_set,
    deserialize_proof,
    deserialize_public,
    deserialize_vk,
    proof_from_bytes,
    proof_to_bytes,
    serialize_accumulator,
    serialize_constraint_system,
    serialize_fr,
    serialize_g1,
    serialize_g2,
    serialize_key_set,
    serialize_proof,
    serialize_vk,
)


class TestScalars:
    def test_fr(self):
        assert serialize_fr(FR(-1)) == str(FR.field_modulus - 1)
        assert deserialize_fr("5") == FR(5)


class TestPoints:
    def test_g1_generator(self):
        assert serialize_g1(G1) == ["1", "2", "1"]

    def test_g1_infinity(self):
        assert serialize_g1(Z1) == ["0", "1", "0"]
        assert is_inf(deserialize_g1(["0", "1", "0"]))

    def test_g2_infinity(self):
        assert serialize_g2(Z2) == [["0", "0"], ["1", "0"], ["0", "0"]]
        assert is_inf(deserialize_g2([["0", "0"], ["1", "0"], ["0", "0"]]))

    def test_projective_input_is_normalized(self):
        p = ec_mul(G1, 7)
        assert serialize_g1(p)[2] == "1"
        assert ec_eq(deserialize_g1(serialize_g1(p)), p)

    def test_g2(self):
        p = ec_mul(G2, 11)
        data = serialize_g2(p)
        assert data[2] == ["1", "0"]
        assert ec_eq(deserialize_g2(data), p)

    def test_json_compatible(self):
        data = serialize_g2(ec_mul(G2, 3))
        assert json.loads(json.dumps(data)) == data

    @pytest.mark.parametrize("data", [["1"], "12", [["1", "2"], "3"], ["x", "2", "1"]])
    def test_bad_shape(self, data):
        with pytest.raises(ValueError):
            deserialize_g1(data)


class TestConstraintSystem:
    def test_content_hash_survives(self, cs):
        restored = deserialize_constraint_system(json.loads(json.dumps(serialize_constraint_system(cs))))
        assert restored.content_hash() == cs.content_hash()
        assert restored.public_signal_names == cs.public_signal_names

    def test_restored_circuit_computes(self, cs):
        restored = deserialize_constraint_system(serialize_constraint_system(cs))
        assert restored.public_signals(restored.evaluate({"a": 3, "b": 4})) == [8]


class TestStateDocuments:
    def test_accumulator(self, prepared):
        data = json.loads(json.dumps(serialize_accumulator(prepared)))
        restored = deserialize_accumulator(data)
        assert restored.phase is prepared.phase
        assert restored.state_digest() == prepared.state_digest()
        assert accumulators.replay(restored) == prepared.transcript_hash

    def test_open_accumulator(self, phase1_data):
        restored = deserialize_accumulator(serialize_accumulator(phase1_data["contributed"]))
        assert restored.lagrange_g1 is None
        assert accumulators.replay(restored) == phase1_data["contributed"].transcript_hash

    def test_key_set(self, key_data):
        final = key_data["final"]
        restored = deserialize_key_set(json.loads(json.dumps(serialize_key_set(final))))
        assert restored.finalized
        assert restored.constraint_system.content_hash() == final.constraint_system.content_hash()
        assert keys.replay(restored) == final.transcript_hash
        assert keys.verification_key(restored) == key_data["vk"]


class TestVerificationKey:
    def test_snarkjs_layout(self, key_data):
        data = serialize_vk(key_data["vk"])
        assert data["protocol"] == "groth16"
        assert data["curve"] == "bn128"
        assert data["nPublic"] == 1
        assert len(data["IC"]) == 2
        assert data["vk_gamma_2"] == serialize_g2(G2)

    def test_round_trip(self, key_data):
        assert deserialize_vk(serialize_vk(key_data["vk"])) == key_data["vk"]

    def test_other_protocol(self, key_data):
        data = serialize_vk(key_data["vk"])
        data["protocol"] = "plonk"
        with pytest.raises(MalformedKey):
            deserialize_vk(data)

    def test_not_an_object(self):
        with pytest.raises(MalformedKey):
            deserialize_vk([1, 2, 3])


class TestProof:
    def test_binary_size(self, proof_data):
        assert len(proof_to_bytes(proof_data["proof"])) == PROOF_SIZE

    def test_binary_g2_order(self, proof_data):
        """B 는 (x 허수부, x 실수부, y 허수부, y 실수부) 순서로 기록된다."""
        data = proof_to_bytes(proof_data["proof"])
        b = serialize_proof(proof_data["proof"])["pi_b"]
        assert int.from_bytes(data[64:96], "big") == int(b[0][1])
        assert int.from_bytes(data[96:128], "big") == int(b[0][0])

    def test_binary_and_json_agree(self, proof_data):
        from_bytes = proof_from_bytes(proof_to_bytes(proof_data["proof"]))
        from_json = deserialize_proof(serialize_proof(proof_data["proof"]))
        assert from_bytes == from_json == proof_data["proof"]

    def test_infinity_points(self):
        proof = Proof(Z1, Z2, Z1)
        data = proof_to_bytes(proof)
        assert data == bytes(PROOF_SIZE)
        assert proof_from_bytes(data) == proof

    def test_coordinates_reduced(self, proof_data):
        data = bytearray(proof_to_bytes(proof_data["proof"]))
        x = int.from_bytes(data[0:32], "big") + FIELD_MODULUS
        data[0:32] = x.to_bytes(32, "big")
        assert proof_from_bytes(bytes(data)) == proof_data["proof"]

    @pytest.mark.parametrize("size", [0, 128, 255, 257])
    def test_wrong_size(self, size):
        with pytest.raises(MalformedProof):
            proof_from_bytes(bytes(size))


class TestPublic:
    def test_accepts_ints_and_strings(self):
        assert deserialize_public(["8", 9]) == [8, 9]

    @pytest.mark.parametrize("data", ["8", [None], ["8.0"], [True]])
    def test_malformed(self, data):
        with pytest.raises(MalformedProof):
            deserialize_public(data)
