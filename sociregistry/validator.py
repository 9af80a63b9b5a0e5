"""Validation of image digests for SOCI index generation.

SOCI index V1 can only be built for image manifests. SOCI index V2 can be
built for image manifests and image indexes.
"""
from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

from sociregistry.errors import RegistryError, UnsupportedPolicyError, ValidationError
from sociregistry.oci.manifest import IMAGE_CONFIG_MEDIA_TYPES, INDEX_MEDIA_TYPES

if TYPE_CHECKING:
    from sociregistry.registry import RegistryClient

logger = logging.getLogger(__name__)


class IndexVersion(str, enum.Enum):
    V1 = "V1"
    V2 = "V2"

    @classmethod
    def parse(cls, value: "IndexVersion | str") -> "IndexVersion":
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedPolicyError(
                f"unsupported SOCI index version: {value!r}, "
                f"expected one of: {[v.value for v in cls]}"
            ) from None


class ManifestValidator:
    def __init__(self, registry: RegistryClient):
        self.registry = registry

    def validate_as_manifest(self, repository: str, digest: str):
        """Check `digest` is an image manifest with a known config media type"""
        manifest = self.registry.get_manifest(repository, digest)
        media_type = manifest.config.mediaType if manifest.config else ""
        if not media_type:
            raise ValidationError("not a valid image manifest: empty config media type")
        if media_type not in IMAGE_CONFIG_MEDIA_TYPES:
            raise ValidationError(
                f"not a valid image manifest: unexpected config media type: "
                f"{media_type}, expected one of: {list(IMAGE_CONFIG_MEDIA_TYPES)}"
            )

    def validate_as_index(self, repository: str, digest: str):
        """Check `digest` is an image index, only the descriptor is fetched"""
        descriptor = self.registry.head_manifest(repository, digest)
        if descriptor.mediaType not in INDEX_MEDIA_TYPES:
            raise ValidationError(
                f"not a valid image index: unexpected media type: "
                f"{descriptor.mediaType}, expected one of: {list(INDEX_MEDIA_TYPES)}"
            )

    def validate(self, repository: str, digest: str, version: IndexVersion | str):
        """Raise when `digest` can not be used to build a SOCI index of `version`

        For V2 an image index is tried first, then an image manifest.
        When both fail the error of the image manifest check is raised,
        the reason the index check failed is only logged.
        """
        version = IndexVersion.parse(version)
        if version is IndexVersion.V1:
            self.validate_as_manifest(repository, digest)
            logger.info("Validated image manifest %s", digest)
        elif version is IndexVersion.V2:
            try:
                self.validate_as_index(repository, digest)
            except RegistryError as e:
                logger.debug("%s is not an image index: %s", digest, e)
            else:
                logger.info("Validated image index %s", digest)
                return
            self.validate_as_manifest(repository, digest)
            logger.info("Validated image manifest %s", digest)
        else:
            raise UnsupportedPolicyError(f"unsupported SOCI index version: {version}")
