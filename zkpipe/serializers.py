"""
직렬화/역직렬화 헬퍼
=====================

TinyDB 저장과 파일 내보내기를 위해 객체를 JSON 호환 형태로 변환한다.
점과 필드 원소의 인코딩은 snarkjs 와 같다 (10진 문자열).

  | 타입  | 형태                                         |
  |-------|----------------------------------------------|
  | FR    | "123"                                        |
  | G1    | ["x", "y", "1"]   (무한원점 ["0", "1", "0"])  |
  | G2    | [["x0","x1"], ["y0","y1"], ["1","0"]]        |

증명의 바이너리 형태는 256 바이트 big-endian:
  A.x | A.y | B.x1 | B.x0 | B.y1 | B.y0 | C.x | C.y   (각 32 바이트)
  좌표는 읽을 때 p 로 축약한다.
"""

from zkpipe.circuit import ConstraintSystem
from zkpipe.errors import MalformedKey, MalformedProof
from zkpipe.field import FIELD_MODULUS, FR, Z1, Z2, g1_point, g2_point, normalize
from zkpipe.groth16.accumulator import Accumulator, Phase
from zkpipe.groth16.contribution import Contribution, PublicKey
from zkpipe.groth16.keys import ProvingKeySet, VerificationKey
from zkpipe.groth16.proving import Proof

PROOF_SIZE = 256


# ─── FR ───

def serialize_fr(val):
    """FR → str(int)"""
    return str(int(val))


def deserialize_fr(s):
    """str(int) → FR"""
    return FR(int(s))


def _to_int(value):
    """10진 문자열 / 정수 → int. 그 외는 ValueError."""
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    raise ValueError(f"not a decimal number: {value!r}")


# ─── G1 point ───

def serialize_g1(point):
    """G1 point → ["x", "y", "1"]"""
    affine = normalize(point)
    if affine is None:
        return ["0", "1", "0"]
    return [str(int(affine[0])), str(int(affine[1])), "1"]


def deserialize_g1(data):
    """["x", "y", "1"] → G1 point. 형태가 틀리면 ValueError."""
    if not isinstance(data, (list, tuple)) or len(data) not in (2, 3):
        raise ValueError(f"G1 point must be [x, y, z], got {data!r}")
    x, y = _to_int(data[0]), _to_int(data[1])
    if len(data) == 3 and _to_int(data[2]) == 0:
        return Z1
    return g1_point(x, y)


# ─── G2 point ───

def serialize_g2(point):
    """G2 point → [["x0","x1"], ["y0","y1"], ["1","0"]]"""
    affine = normalize(point)
    if affine is None:
        return [["0", "0"], ["1", "0"], ["0", "0"]]
    return [
        [str(int(affine[0].coeffs[0])), str(int(affine[0].coeffs[1]))],
        [str(int(affine[1].coeffs[0])), str(int(affine[1].coeffs[1]))],
        ["1", "0"],
    ]


def deserialize_g2(data):
    """[["x0","x1"], ["y0","y1"], ["1","0"]] → G2 point. 형태가 틀리면 ValueError."""
    if not isinstance(data, (list, tuple)) or len(data) not in (2, 3):
        raise ValueError(f"G2 point must be [x, y, z], got {data!r}")
    coords = []
    for pair in data:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise ValueError(f"G2 coordinate must be [c0, c1], got {pair!r}")
        coords.append([_to_int(pair[0]), _to_int(pair[1])])
    if len(coords) == 3 and coords[2] == [0, 0]:
        return Z2
    return g2_point(coords[0], coords[1])


def serialize_g1_list(points):
    return [serialize_g1(p) for p in points]


def deserialize_g1_list(data):
    return [deserialize_g1(p) for p in data]


def serialize_g2_list(points):
    return [serialize_g2(p) for p in points]


def deserialize_g2_list(data):
    return [deserialize_g2(p) for p in data]


def _optional(fn, value):
    return None if value is None else fn(value)


# ─── ConstraintSystem ───

def _serialize_lc(lc):
    return [[wire, str(coeff)] for wire, coeff in sorted(lc.items())]


def _deserialize_lc(data):
    return {int(wire): int(coeff) for wire, coeff in data}


def serialize_constraint_system(cs):
    """ConstraintSystem → dict"""
    program = []
    for op, target, args in cs.program:
        program.append([op, target, [
            _serialize_lc(arg) if isinstance(arg, dict) else arg for arg in args
        ]])
    return {
        "name": cs.name,
        "signals": list(cs.signals),
        "n_outputs": cs.n_outputs,
        "n_public": cs.n_public,
        "inputs": list(cs.inputs),
        "constraints": [[_serialize_lc(lc) for lc in row] for row in cs.constraints],
        "program": program,
        "hash": cs.content_hash(),
    }


def deserialize_constraint_system(data):
    """dict → ConstraintSystem"""
    program = []
    for op, target, args in data["program"]:
        program.append((op, target, [
            _deserialize_lc(arg) if isinstance(arg, list) else arg for arg in args
        ]))
    return ConstraintSystem(
        name=data["name"],
        signals=data["signals"],
        n_outputs=data["n_outputs"],
        n_public=data["n_public"],
        inputs=data["inputs"],
        constraints=[tuple(_deserialize_lc(lc) for lc in row) for row in data["constraints"]],
        program=program,
    )


# ─── Contribution ───

def serialize_contribution(contribution):
    """Contribution → dict"""
    return {
        "contributor": contribution.contributor,
        "prev_hash": contribution.prev_hash,
        "public_keys": {
            label: {
                "g1_s": serialize_g1(pk.g1_s),
                "g1_sx": serialize_g1(pk.g1_sx),
                "g2_spx": serialize_g2(pk.g2_spx),
            }
            for label, pk in contribution.public_keys.items()
        },
        "points": {
            name: serialize_g2(p) if name.endswith("_g2") else serialize_g1(p)
            for name, p in contribution.points.items()
        },
        "state_digest": contribution.state_digest,
        "hash": contribution.hash,
    }


def deserialize_contribution(data):
    """dict → Contribution"""
    return Contribution(
        contributor=data["contributor"],
        prev_hash=data["prev_hash"],
        public_keys={
            label: PublicKey(
                deserialize_g1(pk["g1_s"]),
                deserialize_g1(pk["g1_sx"]),
                deserialize_g2(pk["g2_spx"]),
            )
            for label, pk in data["public_keys"].items()
        },
        points={
            name: deserialize_g2(p) if name.endswith("_g2") else deserialize_g1(p)
            for name, p in data["points"].items()
        },
        state_digest=data["state_digest"],
        hash=data["hash"],
    )


# ─── Accumulator ───

def serialize_accumulator(acc):
    """Accumulator → dict"""
    return {
        "power": acc.power,
        "phase": acc.phase.value,
        "tau_g1": serialize_g1_list(acc.tau_g1),
        "tau_g2": serialize_g2_list(acc.tau_g2),
        "alpha_tau_g1": serialize_g1_list(acc.alpha_tau_g1),
        "beta_tau_g1": serialize_g1_list(acc.beta_tau_g1),
        "beta_g2": serialize_g2(acc.beta_g2),
        "contributions": [serialize_contribution(c) for c in acc.contributions],
        "initial_hash": acc.initial_hash,
        "transcript_hash": acc.transcript_hash,
        "circuit_hash": acc.circuit_hash,
        "domain_size": acc.domain_size,
        "lagrange_g1": _optional(serialize_g1_list, acc.lagrange_g1),
        "lagrange_g2": _optional(serialize_g2_list, acc.lagrange_g2),
        "alpha_lagrange_g1": _optional(serialize_g1_list, acc.alpha_lagrange_g1),
        "beta_lagrange_g1": _optional(serialize_g1_list, acc.beta_lagrange_g1),
        "z_tau_g1": _optional(serialize_g1_list, acc.z_tau_g1),
    }


def deserialize_accumulator(data):
    """dict → Accumulator"""
    return Accumulator(
        power=data["power"],
        phase=Phase(data["phase"]),
        tau_g1=deserialize_g1_list(data["tau_g1"]),
        tau_g2=deserialize_g2_list(data["tau_g2"]),
        alpha_tau_g1=deserialize_g1_list(data["alpha_tau_g1"]),
        beta_tau_g1=deserialize_g1_list(data["beta_tau_g1"]),
        beta_g2=deserialize_g2(data["beta_g2"]),
        contributions=[deserialize_contribution(c) for c in data["contributions"]],
        initial_hash=data["initial_hash"],
        transcript_hash=data["transcript_hash"],
        circuit_hash=data.get("circuit_hash"),
        domain_size=data.get("domain_size"),
        lagrange_g1=_optional(deserialize_g1_list, data.get("lagrange_g1")),
        lagrange_g2=_optional(deserialize_g2_list, data.get("lagrange_g2")),
        alpha_lagrange_g1=_optional(deserialize_g1_list, data.get("alpha_lagrange_g1")),
        beta_lagrange_g1=_optional(deserialize_g1_list, data.get("beta_lagrange_g1")),
        z_tau_g1=_optional(deserialize_g1_list, data.get("z_tau_g1")),
    )


# ─── ProvingKeySet ───

def serialize_key_set(key_set):
    """ProvingKeySet → dict"""
    return {
        "circuit_hash": key_set.circuit_hash,
        "accumulator_hash": key_set.accumulator_hash,
        "constraint_system": serialize_constraint_system(key_set.constraint_system),
        "domain_size": key_set.domain_size,
        "alpha_g1": serialize_g1(key_set.alpha_g1),
        "beta_g1": serialize_g1(key_set.beta_g1),
        "beta_g2": serialize_g2(key_set.beta_g2),
        "gamma_g2": serialize_g2(key_set.gamma_g2),
        "delta_g1": serialize_g1(key_set.delta_g1),
        "delta_g2": serialize_g2(key_set.delta_g2),
        "a_query": serialize_g1_list(key_set.a_query),
        "b1_query": serialize_g1_list(key_set.b1_query),
        "b2_query": serialize_g2_list(key_set.b2_query),
        "ic": serialize_g1_list(key_set.ic),
        "l_query": serialize_g1_list(key_set.l_query),
        "h_query": serialize_g1_list(key_set.h_query),
        "contributions": [serialize_contribution(c) for c in key_set.contributions],
        "initial_hash": key_set.initial_hash,
        "transcript_hash": key_set.transcript_hash,
        "finalized": key_set.finalized,
    }


def deserialize_key_set(data):
    """dict → ProvingKeySet"""
    return ProvingKeySet(
        circuit_hash=data["circuit_hash"],
        accumulator_hash=data["accumulator_hash"],
        constraint_system=deserialize_constraint_system(data["constraint_system"]),
        domain_size=data["domain_size"],
        alpha_g1=deserialize_g1(data["alpha_g1"]),
        beta_g1=deserialize_g1(data["beta_g1"]),
        beta_g2=deserialize_g2(data["beta_g2"]),
        gamma_g2=deserialize_g2(data["gamma_g2"]),
        delta_g1=deserialize_g1(data["delta_g1"]),
        delta_g2=deserialize_g2(data["delta_g2"]),
        a_query=deserialize_g1_list(data["a_query"]),
        b1_query=deserialize_g1_list(data["b1_query"]),
        b2_query=deserialize_g2_list(data["b2_query"]),
        ic=deserialize_g1_list(data["ic"]),
        l_query=deserialize_g1_list(data["l_query"]),
        h_query=deserialize_g1_list(data["h_query"]),
        contributions=[deserialize_contribution(c) for c in data["contributions"]],
        initial_hash=data["initial_hash"],
        transcript_hash=data["transcript_hash"],
        finalized=data["finalized"],
    )


# ─── VerificationKey (snarkjs verification_key.json) ───

def serialize_vk(vk):
    """VerificationKey → snarkjs verification_key.json dict"""
    return {
        "protocol": vk.protocol,
        "curve": vk.curve,
        "nPublic": vk.n_public,
        "vk_alpha_1": serialize_g1(vk.alpha_g1),
        "vk_beta_2": serialize_g2(vk.beta_g2),
        "vk_gamma_2": serialize_g2(vk.gamma_g2),
        "vk_delta_2": serialize_g2(vk.delta_g2),
        "IC": serialize_g1_list(vk.ic),
    }


def deserialize_vk(data):
    """snarkjs verification_key.json dict → VerificationKey

    Raises:
        MalformedKey: 필드 누락, 잘못된 형태, 숫자가 아닌 값, IC 개수 불일치
    """
    if isinstance(data, VerificationKey):
        return data
    if not isinstance(data, dict):
        raise MalformedKey(f"verification key must be an object, got {type(data).__name__}")
    if data.get("protocol", "groth16") != "groth16":
        raise MalformedKey(f"unsupported protocol {data.get('protocol')!r}")
    try:
        n_public = _to_int(data["nPublic"])
        vk = VerificationKey(
            n_public=n_public,
            alpha_g1=deserialize_g1(data["vk_alpha_1"]),
            beta_g2=deserialize_g2(data["vk_beta_2"]),
            gamma_g2=deserialize_g2(data["vk_gamma_2"]),
            delta_g2=deserialize_g2(data["vk_delta_2"]),
            ic=deserialize_g1_list(data["IC"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedKey(f"malformed verification key: {e}")
    if n_public < 0 or len(vk.ic) != n_public + 1:
        raise MalformedKey(f"IC has {len(vk.ic)} point(s), nPublic is {n_public}")
    return vk


# ─── Proof (snarkjs proof.json) ───

def serialize_proof(proof):
    """Proof → snarkjs proof.json dict"""
    return {
        "pi_a": serialize_g1(proof.a),
        "pi_b": serialize_g2(proof.b),
        "pi_c": serialize_g1(proof.c),
        "protocol": proof.protocol,
        "curve": proof.curve,
    }


def deserialize_proof(data):
    """snarkjs proof.json dict (또는 256 바이트) → Proof

    Raises:
        MalformedProof: 필드 누락, 잘못된 형태, 숫자가 아닌 값
    """
    if isinstance(data, Proof):
        return data
    if isinstance(data, (bytes, bytearray)):
        return proof_from_bytes(data)
    if not isinstance(data, dict):
        raise MalformedProof(f"proof must be an object, got {type(data).__name__}")
    try:
        return Proof(
            deserialize_g1(data["pi_a"]),
            deserialize_g2(data["pi_b"]),
            deserialize_g1(data["pi_c"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedProof(f"malformed proof: {e}")


def _coords(proof):
    a = normalize(proof.a) or (0, 0)
    b = normalize(proof.b)
    c = normalize(proof.c) or (0, 0)
    if b is None:
        b_coords = [0, 0, 0, 0]
    else:
        b_coords = [int(b[0].coeffs[1]), int(b[0].coeffs[0]),
                    int(b[1].coeffs[1]), int(b[1].coeffs[0])]
    return [int(a[0]), int(a[1])] + b_coords + [int(c[0]), int(c[1])]


def proof_to_bytes(proof):
    """Proof → 256 바이트 (EVM 프리컴파일 순서: G2 는 허수부 먼저)."""
    return b"".join(v.to_bytes(32, "big") for v in _coords(proof))


def proof_from_bytes(data):
    """256 바이트 → Proof. 모든 좌표가 0 인 점은 무한원점이다.

    Raises:
        MalformedProof: 길이가 256 이 아닐 때
    """
    if len(data) != PROOF_SIZE:
        raise MalformedProof(f"binary proof must be {PROOF_SIZE} bytes, got {len(data)}")
    v = [int.from_bytes(data[i:i + 32], "big") % FIELD_MODULUS for i in range(0, PROOF_SIZE, 32)]
    a = Z1 if v[0] == v[1] == 0 else g1_point(v[0], v[1])
    b = Z2 if not any(v[2:6]) else g2_point([v[3], v[2]], [v[5], v[4]])
    c = Z1 if v[6] == v[7] == 0 else g1_point(v[6], v[7])
    return Proof(a, b, c)


# ─── Public signals (snarkjs public.json) ───

def serialize_public(public_signals):
    return [str(int(v)) for v in public_signals]


def deserialize_public(data):
    """public.json → list[int]

    Raises:
        MalformedProof: 목록이 아니거나 숫자가 아닌 값이 있을 때
    """
    if not isinstance(data, (list, tuple)):
        raise MalformedProof(f"public signals must be a list, got {type(data).__name__}")
    try:
        return [_to_int(v) for v in data]
    except ValueError as e:
        raise MalformedProof(f"malformed public signals: {e}")
