from zkpipe.field import MAX_TWO_ADICITY

# Powers of Tau 지수 상한 (스칼라 필드의 2-adicity)
MAX_POWER = MAX_TWO_ADICITY

# sum_of_squares_mod 회로(도메인 8)에 여유를 둔 기본값
DEFAULT_POWER = 4

MIN_ENTROPY_BYTES = 8
MIN_DISTINCT_ENTROPY_BYTES = 4
MIN_CONTRIBUTIONS = 1

DEFAULT_DB_PATH = "ceremony.json"
DEFAULT_CEREMONY = "default"

DEFAULT_WITNESS = {"a": 3, "b": 4}
DEFAULT_MODULUS = 17

DEFAULT_PHASE1_CONTRIBUTIONS = [("First contribution", "Entropy1")]
DEFAULT_KEY_CONTRIBUTIONS = [("Second contribution", "Entropy2")]

# 내보내기 파일 이름
VERIFICATION_KEY_FILE = "verification_key.json"
PROOF_FILE = "proof.json"
PUBLIC_FILE = "public.json"
SOLIDITY_VERIFIER_FILE = "verifier.sol"
CALLDATA_FILE = "calldata.txt"
BROWSER_VERIFIER_FILE = "browser-verifier.js"
SERVER_VERIFIER_FILE = "node-verifier.js"
DEMO_PAGE_FILE = "index.html"

SNARKJS_CDN = "https://cdn.jsdelivr.net/npm/snarkjs@0.7.0/build/snarkjs.min.js"


class CeremonyPolicy:
    """기여 수락/마무리 정책.

    속성:
        min_entropy_bytes: 엔트로피 최소 길이 (바이트)
        min_distinct_bytes: 엔트로피에 포함되어야 하는 서로 다른 바이트 수
        min_contributions: 마무리에 필요한 최소 기여 수 (0 은 허용되지 않음)
    """

    def __init__(self, min_entropy_bytes=MIN_ENTROPY_BYTES,
                 min_distinct_bytes=MIN_DISTINCT_ENTROPY_BYTES,
                 min_contributions=MIN_CONTRIBUTIONS):
        if min_contributions < 1:
            raise ValueError("min_contributions must be at least 1")
        self.min_entropy_bytes = min_entropy_bytes
        self.min_distinct_bytes = min_distinct_bytes
        self.min_contributions = min_contributions

    def __repr__(self):
        return (f"CeremonyPolicy(min_entropy_bytes={self.min_entropy_bytes}, "
                f"min_distinct_bytes={self.min_distinct_bytes}, "
                f"min_contributions={self.min_contributions})")


DEFAULT_POLICY = CeremonyPolicy()
