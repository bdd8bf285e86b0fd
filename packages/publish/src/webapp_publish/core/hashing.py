import hashlib
from dataclasses import dataclass


@dataclass(frozen=True)
class BodyDigest:
    sha256: str
    bytes: int


def sha256_bytes(b: bytes) -> str:
    h = hashlib.sha256()
    h.update(b)
    return h.hexdigest()


def digest_body(b: bytes) -> BodyDigest:
    return BodyDigest(sha256=sha256_bytes(b), bytes=len(b))
