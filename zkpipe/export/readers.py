"""내보낸 산출물에서 검증키 / 증명 / 공개 신호를 다시 읽는다."""

import json
import re

from zkpipe.serializers import (
    deserialize_proof,
    deserialize_public,
    deserialize_vk,
    proof_from_bytes,
)

CONSTANT_RE = re.compile(r"uint256\s+constant\s+(\w+)\s*=\s*(\d+)\s*;")


def _between(source, name):
    match = re.search(r"/\* %s:begin \*/(.*?)/\* %s:end \*/" % (name, name), source, re.S)
    if match is None:
        raise ValueError(f"no embedded {name} block found")
    return json.loads(match.group(1))


def read_onchain_verifier(source):
    """Solidity 검증 컨트랙트의 상수에서 VerificationKey 를 복원한다."""
    constants = {name: value for name, value in CONSTANT_RE.findall(source)}
    ic = []
    while f"IC{len(ic)}x" in constants:
        i = len(ic)
        ic.append([constants[f"IC{i}x"], constants[f"IC{i}y"], "1"])

    def g2(prefix):
        c = constants
        return [[c[prefix + "x2"], c[prefix + "x1"]],
                [c[prefix + "y2"], c[prefix + "y1"]],
                ["1", "0"]]

    try:
        data = {
            "protocol": "groth16",
            "curve": "bn128",
            "nPublic": len(ic) - 1,
            "vk_alpha_1": [constants["alphax"], constants["alphay"], "1"],
            "vk_beta_2": g2("beta"),
            "vk_gamma_2": g2("gamma"),
            "vk_delta_2": g2("delta"),
            "IC": ic,
        }
    except KeyError as e:
        raise ValueError(f"verifier source is missing constant {e}")
    return deserialize_vk(data)


def read_call_data(blob):
    """call data 문자열 → (공개 신호, Proof)."""
    a, b, c, public = json.loads("[" + blob + "]")
    words = [int(v, 16) for v in a + b[0] + b[1] + c]
    proof = proof_from_bytes(b"".join(w.to_bytes(32, "big") for w in words))
    return [int(v, 16) for v in public], proof


def read_embedded_verifier(source):
    """브라우저 / Node.js 모듈에 임베드된 VerificationKey."""
    return deserialize_vk(_between(source, "vkey"))


def read_demo_page(html):
    """데모 페이지 → (VerificationKey, Proof, 공개 신호)."""
    return (
        deserialize_vk(_between(html, "vkey")),
        deserialize_proof(_between(html, "proof")),
        deserialize_public(_between(html, "public")),
    )
