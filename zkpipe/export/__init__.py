"""
산출물 내보내기
================

검증키와 증명을 외부에서 쓸 수 있는 형태로 렌더링한다.
모든 렌더링은 입력의 순수 함수이며 Jinja2 템플릿 (templates/) 을 쓴다.

  | 함수                          | 결과                              |
  |-------------------------------|-----------------------------------|
  | render_onchain_verifier       | Solidity Groth16Verifier 컨트랙트 |
  | render_call_data              | verifyProof() 호출 인자 문자열    |
  | render_embeddable_verifier    | 브라우저 / Node.js 검증 모듈      |
  | render_demo_page              | 버튼 하나로 검증하는 HTML 페이지  |

임베드된 값은 `/* vkey:begin */ ... /* vkey:end */` 같은 표식 사이에
JSON 으로 들어가므로 readers 모듈로 다시 읽을 수 있다.

사용 예시:
    >>> source = render_onchain_verifier(vk)
    >>> read_onchain_verifier(source) == vk  # True
"""

import hashlib
import json
import os

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from zkpipe.config import PROOF_FILE, PUBLIC_FILE, SNARKJS_CDN
from zkpipe.export.readers import (
    read_call_data,
    read_demo_page,
    read_embedded_verifier,
    read_onchain_verifier,
)
from zkpipe.field import CURVE_ORDER, FIELD_MODULUS
from zkpipe.serializers import (
    deserialize_proof,
    deserialize_public,
    deserialize_vk,
    proof_to_bytes,
    serialize_proof,
    serialize_public,
    serialize_vk,
)

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")

TARGETS = {
    "browser": "browser-verifier.js.j2",
    "server": "node-verifier.js.j2",
}

env = Environment(
    loader=FileSystemLoader([TEMPLATE_DIR]),
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


def vk_fingerprint(vk):
    data = json.dumps(serialize_vk(deserialize_vk(vk)), sort_keys=True).encode()
    return hashlib.blake2b(data, digest_size=16).hexdigest()


def render_onchain_verifier(vk):
    """Solidity Groth16 검증 컨트랙트 소스를 만든다.

    G2 좌표는 EVM 프리컴파일 순서 (허수부 먼저) 로 들어간다.
    """
    data = serialize_vk(deserialize_vk(vk))
    return env.get_template("verifier_groth16.sol.j2").render(
        r=CURVE_ORDER,
        q=FIELD_MODULUS,
        vk_hash=vk_fingerprint(vk),
        n_public=data["nPublic"],
        alpha=data["vk_alpha_1"],
        beta=data["vk_beta_2"],
        gamma=data["vk_gamma_2"],
        delta=data["vk_delta_2"],
        ic=data["IC"],
    )


def _p256(value):
    return '"0x' + format(int(value), "064x") + '"'


def render_call_data(public_signals, proof):
    """verifyProof(_pA, _pB, _pC, _pubSignals) 호출 인자 (snarkjs zkey export soliditycalldata 형식)."""
    words = [int.from_bytes(w, "big") for w in _words(proof_to_bytes(deserialize_proof(proof)))]
    a, b, c = words[0:2], words[2:6], words[6:8]
    public = deserialize_public(public_signals)
    return (
        f"[{_p256(a[0])}, {_p256(a[1])}],"
        f"[[{_p256(b[0])}, {_p256(b[1])}],[{_p256(b[2])}, {_p256(b[3])}]],"
        f"[{_p256(c[0])}, {_p256(c[1])}],"
        f"[{', '.join(_p256(v) for v in public)}]"
    )


def _words(data):
    return [data[i:i + 32] for i in range(0, len(data), 32)]


def render_embeddable_verifier(vk, target="browser"):
    """snarkjs 로 검증하는 JavaScript 모듈. target 은 "browser" 또는 "server"."""
    if target not in TARGETS:
        raise ValueError(f"unknown target {target!r}, expected one of {sorted(TARGETS)}")
    return env.get_template(TARGETS[target]).render(
        vkey=serialize_vk(deserialize_vk(vk)),
        snarkjs_cdn=SNARKJS_CDN,
        proof_file=PROOF_FILE,
        public_file=PUBLIC_FILE,
    )


def render_demo_page(vk, proof, public_signals, title="Groth16 proof verifier",
                     description=None):
    """브라우저 검증 모듈, 증명, 공개 신호를 모두 담은 단일 HTML 페이지."""
    return env.get_template("index.html.j2").render(
        title=title,
        description=description,
        snarkjs_cdn=SNARKJS_CDN,
        verifier_module=render_embeddable_verifier(vk, "browser"),
        proof=serialize_proof(deserialize_proof(proof)),
        public=serialize_public(deserialize_public(public_signals)),
    )
