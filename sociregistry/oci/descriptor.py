import re
from hashlib import sha256

from pydantic import BaseModel, ConfigDict

DIGEST_PATTERN = re.compile(r"^[a-z0-9]+(?:[+._-][a-z0-9]+)*:[a-zA-Z0-9=_-]+$")


def is_digest(reference: str) -> bool:
    return DIGEST_PATTERN.match(reference) is not None


def compute_digest(data: bytes) -> str:
    return f"sha256:{sha256(data).hexdigest()}"


class Platform(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/image-index.md
    """

    model_config = ConfigDict(frozen=True)

    architecture: str
    os: str
    osVersion: str | None = None
    osFeatures: list[str] | None = None
    variant: str | None = None


class Descriptor(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/descriptor.md

    Descriptors are equal when their digests are equal.
    """

    model_config = ConfigDict(frozen=True)

    digest: str
    size: int
    mediaType: str = ""
    urls: list[str] | None = None
    annotations: dict[str, str] | None = None
    artifactType: str | None = None
    platform: Platform | None = None

    def __eq__(self, other):
        if not isinstance(other, Descriptor):
            return NotImplemented
        return self.digest == other.digest

    def __hash__(self):
        return hash(self.digest)

    @classmethod
    def from_bytes(cls, data: bytes, media_type: str) -> "Descriptor":
        return cls(mediaType=media_type, digest=compute_digest(data), size=len(data))
