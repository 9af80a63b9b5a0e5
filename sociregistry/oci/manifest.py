import json
from typing import Final

from pydantic import BaseModel, ConfigDict

from sociregistry.oci.descriptor import Descriptor

MEDIA_TYPE_DOCKER_MANIFEST: Final = "application/vnd.docker.distribution.manifest.v2+json"
MEDIA_TYPE_DOCKER_MANIFEST_LIST: Final = (
    "application/vnd.docker.distribution.manifest.list.v2+json"
)
MEDIA_TYPE_OCI_MANIFEST: Final = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_OCI_INDEX: Final = "application/vnd.oci.image.index.v1+json"
MEDIA_TYPE_OCI_ARTIFACT_MANIFEST: Final = "application/vnd.oci.artifact.manifest.v1+json"

MEDIA_TYPE_DOCKER_IMAGE_CONFIG: Final = "application/vnd.docker.container.image.v1+json"
MEDIA_TYPE_OCI_IMAGE_CONFIG: Final = "application/vnd.oci.image.config.v1+json"

IMAGE_CONFIG_MEDIA_TYPES: Final = (
    MEDIA_TYPE_DOCKER_IMAGE_CONFIG,
    MEDIA_TYPE_OCI_IMAGE_CONFIG,
)
INDEX_MEDIA_TYPES: Final = (MEDIA_TYPE_DOCKER_MANIFEST_LIST, MEDIA_TYPE_OCI_INDEX)
MANIFEST_MEDIA_TYPES: Final = (
    MEDIA_TYPE_DOCKER_MANIFEST,
    MEDIA_TYPE_OCI_MANIFEST,
    MEDIA_TYPE_OCI_ARTIFACT_MANIFEST,
    *INDEX_MEDIA_TYPES,
)

# Value for the Accept header when asking a registry for any kind of manifest
ACCEPT_MANIFESTS: Final = ", ".join(MANIFEST_MEDIA_TYPES)


def is_index_type(media_type: str) -> bool:
    return media_type in INDEX_MEDIA_TYPES


def is_manifest_type(media_type: str) -> bool:
    return media_type in MANIFEST_MEDIA_TYPES


class Manifest(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/manifest.md

    `config` is None when the content is not an image manifest,
    for example when an index is decoded as a manifest.
    """

    model_config = ConfigDict(frozen=True)

    config: Descriptor | None = None
    artifactType: str | None = None
    layers: list[Descriptor] = []
    subject: Descriptor | None = None
    annotations: dict[str, str] | None = None

    mediaType: str = ""
    schemaVersion: int = 2


class Index(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/image-index.md
    """

    model_config = ConfigDict(frozen=True)

    manifests: list[Descriptor] = []
    artifactType: str | None = None
    subject: Descriptor | None = None
    annotations: dict[str, str] | None = None

    mediaType: str = MEDIA_TYPE_OCI_INDEX
    schemaVersion: int = 2


def successors(descriptor: Descriptor, data: bytes) -> list[Descriptor]:
    """Return the descriptors directly referenced by a manifest's content

    Blobs have no successors. The subject of a manifest is not followed,
    it is expected to be present in the target already.
    """
    if not is_manifest_type(descriptor.mediaType):
        return []
    content = json.loads(data)
    if is_index_type(descriptor.mediaType):
        return [Descriptor.model_validate(m) for m in content.get("manifests", [])]
    nodes = []
    if content.get("config"):
        nodes.append(Descriptor.model_validate(content["config"]))
    # Artifact manifests store their content under "blobs"
    for key in ("layers", "blobs"):
        nodes.extend(Descriptor.model_validate(d) for d in content.get(key) or [])
    return nodes
