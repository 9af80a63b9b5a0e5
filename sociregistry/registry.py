from __future__ import annotations

import logging

import httpx
import pydantic

from sociregistry.auth import (
    CredentialSupplier,
    EcrCredentialSupplier,
    authorize,
    ecr_region,
)
from sociregistry.config import Settings
from sociregistry.errors import DecodeError, TagError, TransferError, classify_push_error
from sociregistry.oci.client import Client
from sociregistry.oci.descriptor import Descriptor
from sociregistry.oci.manifest import Manifest
from sociregistry.oci.store import Store
from sociregistry.oci.transfer import Repository, copy_graph, copy_in
from sociregistry.validator import IndexVersion, ManifestValidator

logger = logging.getLogger(__name__)


class RegistryClient:
    """Pull images from and push SOCI artifacts to a single registry.

    ECR registries are detected by hostname and authorized when the
    client is created.
    """

    def __init__(
        self,
        registry_url: str,
        username: str | None = None,
        password: str | None = None,
        insecure: bool = False,
        settings: Settings | None = None,
        credentials: CredentialSupplier | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        logger.info("Initializing registry client for %s", registry_url)
        self.settings = settings or Settings.from_env()
        self._client = Client(
            registry_url,
            username=username,
            password=password,
            insecure=insecure,
            timeout=self.settings.timeout,
            transport=transport,
        )
        region = ecr_region(registry_url)
        if region is not None:
            if credentials is None:
                credentials = EcrCredentialSupplier(
                    region=region, endpoint_url=self.settings.ecr_endpoint
                )
            authorize(self._client, credentials, user_agent=self.settings.user_agent)
        self.validator = ManifestValidator(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self._client.close()

    def repository(self, name: str) -> Repository:
        return Repository(self._client, name)

    def pull(self, repository: str, reference: str, store: Store) -> Descriptor:
        """Copy an image into `store`, tagged there as `reference`

        `reference` can be either a digest or a tag.
        """
        logger.info("Pulling image %s:%s", repository, reference)
        return copy_in(self.repository(repository), reference, store)

    def push(self, store: Store, descriptor: Descriptor, repository: str, tag: str = ""):
        """Push the artifact `descriptor` from `store`, tagging it when `tag` is set

        Raises UnsupportedRegistryError when the registry rejects OCI artifacts.
        """
        logger.info("Pushing artifact %s to %s", descriptor.digest, repository)
        repo = self.repository(repository)
        try:
            copy_graph(store, repo, descriptor)
        except TransferError as e:
            error = classify_push_error(e)
            if error is e:
                raise
            raise error from e

        if tag:
            logger.info("Tagging %s with %s", descriptor.digest, tag)
            try:
                repo.tag(descriptor, tag)
            except TransferError as e:
                raise TagError(
                    f"failed to tag artifact: {e.args[0]}",
                    operation="tag",
                    repository=repository,
                    reference=tag,
                    status_code=e.status_code,
                    errors=e.errors,
                ) from e

    def head_manifest(self, repository: str, reference: str) -> Descriptor:
        """Return the descriptor of a manifest or index"""
        return self.repository(repository).resolve(reference)

    def get_manifest(self, repository: str, digest: str) -> Manifest:
        """Fetch and decode an image manifest

        `digest` must be a digest, tags are not resolved.
        """
        _, data = self.repository(repository).fetch_manifest(digest)
        try:
            return Manifest.model_validate_json(data)
        except pydantic.ValidationError as e:
            raise DecodeError(f"{repository}@{digest} is not a valid manifest: {e}") from e

    def validate_image_digest(
        self, repository: str, digest: str, version: IndexVersion | str
    ):
        self.validator.validate(repository, digest, version)
