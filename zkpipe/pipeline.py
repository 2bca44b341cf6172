"""
전체 파이프라인
================

회로 → Powers of Tau → 회로 준비 → 증명키 → 증명 → 검증 → 내보내기 를
한 번에 실행한다. 각 단계의 결과는 저장소에 기록되므로, 같은 저장소로
다시 실행하면 이미 끝난 단계는 건너뛴다.

**기본값**:
  | 항목             | 값                                        |
  |------------------|-------------------------------------------|
  | 회로             | c = (a² + b²) mod 17                      |
  | 위트니스         | {"a": 3, "b": 4}  → 공개 출력 [8]         |
  | power            | 4                                         |
  | phase 1 기여     | "First contribution"                      |
  | 증명키 기여      | "Second contribution"                     |

검증이 False 이면 내보내기를 하지 않고 verified=False 를 반환한다.
단계 오류는 그대로 전달되며, 앞 단계에서 저장된 산출물은 남는다.

사용 예시:
    >>> result = run_pipeline("build")
    >>> result.public_signals  # [8]
"""

import json
import logging
import os

from zkpipe import config
from zkpipe.circuit import ConstraintSystem
from zkpipe.export import (
    render_call_data,
    render_demo_page,
    render_embeddable_verifier,
    render_onchain_verifier,
)
from zkpipe.groth16.ceremony import CeremonyManager
from zkpipe.groth16.proving import prove
from zkpipe.groth16.verifying import verify
from zkpipe.serializers import serialize_proof, serialize_public, serialize_vk
from zkpipe.storage import ArtifactStore

logger = logging.getLogger(__name__)


class PipelineResult:

    def __init__(self, accumulator, key_set, verification_key, proof, public_signals,
                 verified, files):
        self.accumulator = accumulator
        self.key_set = key_set
        self.verification_key = verification_key
        self.proof = proof
        self.public_signals = public_signals
        self.verified = verified
        self.files = files

    def __repr__(self):
        return (f"PipelineResult(public_signals={self.public_signals}, "
                f"verified={self.verified}, files={sorted(self.files)})")


def _write(output_dir, name, content):
    path = os.path.join(output_dir, name)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    logger.debug(f"wrote {path}")
    return path


def export_all(output_dir, vk, proof, public_signals, description=None):
    """모든 산출물을 output_dir 에 파일로 쓴다.

    Returns:
        dict: 파일 이름 → 경로
    """
    os.makedirs(output_dir, exist_ok=True)
    contents = {
        config.VERIFICATION_KEY_FILE: json.dumps(serialize_vk(vk), indent=1),
        config.PROOF_FILE: json.dumps(serialize_proof(proof), indent=1),
        config.PUBLIC_FILE: json.dumps(serialize_public(public_signals), indent=1),
        config.SOLIDITY_VERIFIER_FILE: render_onchain_verifier(vk),
        config.CALLDATA_FILE: render_call_data(public_signals, proof),
        config.BROWSER_VERIFIER_FILE: render_embeddable_verifier(vk, "browser"),
        config.SERVER_VERIFIER_FILE: render_embeddable_verifier(vk, "server"),
        config.DEMO_PAGE_FILE: render_demo_page(vk, proof, public_signals,
                                                description=description),
    }
    files = {name: _write(output_dir, name, content) for name, content in contents.items()}
    logger.info(f"exported {len(files)} artifact(s) to {output_dir}")
    return files


def run_pipeline(output_dir, constraint_system=None, witness=None, power=config.DEFAULT_POWER,
                 phase1_contributions=None, key_contributions=None, store=None,
                 ceremony=config.DEFAULT_CEREMONY, policy=config.DEFAULT_POLICY, rng=None):
    """파이프라인 전체를 실행한다.

    Args:
        output_dir: 내보내기 파일을 쓸 디렉토리
        constraint_system: 회로 (기본: sum_of_squares_mod(17))
        witness: 입력 신호 값 (기본: {"a": 3, "b": 4})
        power: Powers of Tau 지수
        phase1_contributions, key_contributions: [(기여자, 엔트로피), ...]
        store: ArtifactStore (기본: output_dir/ceremony.json)
        ceremony: 저장소 안의 세레모니 이름
        rng: 증명 블라인딩 난수 생성기

    Returns:
        PipelineResult
    """
    if constraint_system is None:
        constraint_system = ConstraintSystem.sum_of_squares_mod(config.DEFAULT_MODULUS)
    if witness is None:
        witness = dict(config.DEFAULT_WITNESS)
    if phase1_contributions is None:
        phase1_contributions = config.DEFAULT_PHASE1_CONTRIBUTIONS
    if key_contributions is None:
        key_contributions = config.DEFAULT_KEY_CONTRIBUTIONS
    owns_store = store is None
    if owns_store:
        os.makedirs(output_dir, exist_ok=True)
        store = ArtifactStore(os.path.join(output_dir, config.DEFAULT_DB_PATH))
    try:
        return _run(output_dir, constraint_system, witness, power, phase1_contributions,
                    key_contributions, store, ceremony, policy, rng)
    finally:
        if owns_store:
            store.close()


def _run(output_dir, constraint_system, witness, power, phase1_contributions,
         key_contributions, store, ceremony, policy, rng):
    logger.info(f"pipeline {ceremony!r}: circuit {constraint_system!r}")
    manager = CeremonyManager(store, ceremony, policy)
    acc = manager.run(power, phase1_contributions, constraint_system)
    key_set, vk = manager.run_keys(key_contributions, constraint_system)

    proof, public_signals = prove(key_set, witness, rng=rng)
    verified = verify(vk, public_signals, proof)
    if not verified:
        logger.error(f"pipeline {ceremony!r}: proof did not verify, nothing exported")
        return PipelineResult(acc, key_set, vk, proof, public_signals, False, {})

    files = export_all(output_dir, vk, proof, public_signals,
                       description=f"Circuit {constraint_system.name}, "
                                   f"public signals {public_signals}")
    store.save_artifact(ceremony, "verification_key", serialize_vk(vk))
    store.save_artifact(ceremony, "proof", serialize_proof(proof))
    store.save_artifact(ceremony, "public", serialize_public(public_signals))
    logger.info(f"pipeline {ceremony!r}: done, public signals {public_signals}")
    return PipelineResult(acc, key_set, vk, proof, public_signals, True, files)
