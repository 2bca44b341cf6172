"""
해시 트랜스크립트
==================

기여 체인의 해시와 기여자 비밀값 유도에 쓰이는 BLAKE2b-512 기반
트랜스크립트.

**두 가지 용도**:
  1. 체인 해시: 이전 해시 + 기여 내용(공개키, 결과 점, 상태 다이제스트)을
     누적하여 digest() 를 취하면 그 기여의 트랜스크립트 해시가 된다.
  2. 비밀값 유도: 이전 해시 + 엔트로피를 누적한 뒤 challenge_scalar() 로
     FR 원소를 뽑는다. 뽑을 때마다 해시가 상태에 다시 들어가므로
     연속 호출은 서로 다른 값을 낸다.

모든 데이터는 레이블과 함께 추가되어 도메인이 분리된다.

사용 예시:
    >>> t = Transcript(b"zkpipe.contribution")
    >>> t.append_bytes(b"prev", prev_hash)
    >>> tau = t.challenge_scalar(b"tau")
"""

import hashlib

from zkpipe.field import FR, CURVE_ORDER, is_g2, normalize

DIGEST_SIZE = 64


def blake2b(data):
    return hashlib.blake2b(data, digest_size=DIGEST_SIZE).digest()


class Transcript:
    """BLAKE2b 트랜스크립트.

    속성:
        state: 지금까지 누적된 해시 입력 바이트열
    """

    def __init__(self, label=b"zkpipe"):
        self.state = bytearray()
        self.state.extend(label)

    def append_bytes(self, label, data):
        """길이 접두사와 함께 임의의 바이트열을 추가한다."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.state.extend(label)
        self.state.extend(len(data).to_bytes(8, "big"))
        self.state.extend(data)

    def append_int(self, label, value):
        self.state.extend(label)
        self.state.extend(int(value).to_bytes(32, "big"))

    def append_scalar(self, label, scalar):
        self.state.extend(label)
        self.state.extend((int(scalar) % CURVE_ORDER).to_bytes(32, "big"))

    def append_point(self, label, point):
        """G1 또는 G2 점을 아핀 좌표로 추가한다.

        G1: x || y (64바이트), G2: x.c0 || x.c1 || y.c0 || y.c1 (128바이트).
        무한원점은 같은 길이의 0 바이트열.
        """
        self.state.extend(label)
        g2 = is_g2(point)
        affine = normalize(point)
        if affine is None:
            self.state.extend(b"\x00" * (128 if g2 else 64))
            return
        x, y = affine
        if g2:
            for coord in (x, y):
                for c in coord.coeffs:
                    self.state.extend(int(c).to_bytes(32, "big"))
        else:
            self.state.extend(int(x).to_bytes(32, "big"))
            self.state.extend(int(y).to_bytes(32, "big"))

    def append_points(self, label, points):
        self.append_int(label, len(points))
        for point in points:
            self.append_point(b"", point)

    def digest(self):
        return blake2b(bytes(self.state))

    def hexdigest(self):
        return self.digest().hex()

    def challenge_scalar(self, label):
        """트랜스크립트에서 0 이 아닌 FR 원소를 뽑는다 (체이닝)."""
        while True:
            self.state.extend(label)
            h = blake2b(bytes(self.state))
            self.state.extend(h)
            value = int.from_bytes(h, "big") % CURVE_ORDER
            if value != 0:
                return FR(value)
