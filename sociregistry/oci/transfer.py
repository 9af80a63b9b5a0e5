"""Copy artifact graphs between a remote repository and a local store"""
from __future__ import annotations

import logging
from contextlib import contextmanager

import httpx

from sociregistry.errors import TransferError
from sociregistry.oci.client import Client
from sociregistry.oci.descriptor import Descriptor
from sociregistry.oci.manifest import is_manifest_type, successors
from sociregistry.oci.store import Store

logger = logging.getLogger(__name__)


def _errors(response: httpx.Response) -> list[dict]:
    try:
        errors = response.json().get("errors")
    except (ValueError, AttributeError):
        return []
    return [e for e in errors or [] if isinstance(e, dict)]


@contextmanager
def translate_errors(operation: str, repository: str, reference: str | None = None):
    """Raise httpx failures as TransferError"""
    try:
        yield
    except httpx.HTTPStatusError as e:
        response = e.response
        errors = _errors(response)
        if errors:
            detail = "; ".join(
                f"{error.get('code', '').lower()}: {error.get('message', '')}"
                for error in errors
            )
        else:
            detail = response.reason_phrase
        raise TransferError(
            f"Response status code {response.status_code}: {detail}",
            operation=operation,
            repository=repository,
            reference=reference,
            status_code=response.status_code,
            errors=errors,
        ) from e
    except httpx.HTTPError as e:
        raise TransferError(
            str(e) or e.__class__.__name__,
            operation=operation,
            repository=repository,
            reference=reference,
        ) from e


class Repository:
    """A single repository on the registry behind `client`"""

    def __init__(self, client: Client, name: str):
        self.client = client
        self.name = name

    def __repr__(self):
        return f"{self.client.host}/{self.name}"

    def resolve(self, reference: str) -> Descriptor:
        with translate_errors("resolve", self.name, reference):
            return self.client.resolve(self.name, reference)

    def fetch_manifest(self, reference: str) -> tuple[Descriptor, bytes]:
        with translate_errors("fetch_manifest", self.name, reference):
            return self.client.fetch_manifest(self.name, reference)

    def fetch(self, descriptor: Descriptor) -> bytes:
        if is_manifest_type(descriptor.mediaType):
            return self.fetch_manifest(descriptor.digest)[1]
        with translate_errors("fetch", self.name, descriptor.digest):
            return self.client.pull_blob(self.name, descriptor.digest)

    def exists(self, descriptor: Descriptor) -> bool:
        with translate_errors("exists", self.name, descriptor.digest):
            if is_manifest_type(descriptor.mediaType):
                return self.client.manifest_exists(self.name, descriptor.digest)
            return self.client.blob_exists(self.name, descriptor.digest)

    def push(self, descriptor: Descriptor, data: bytes):
        with translate_errors("push", self.name, descriptor.digest):
            if is_manifest_type(descriptor.mediaType):
                self.client.push_manifest(
                    self.name, descriptor.digest, data, descriptor.mediaType
                )
            else:
                self.client.push_blob(self.name, data, descriptor.digest)

    def tag(self, descriptor: Descriptor, tag: str):
        """Tag the manifest `descriptor` by pushing it again under `tag`"""
        _, data = self.fetch_manifest(descriptor.digest)
        with translate_errors("tag", self.name, tag):
            self.client.push_manifest(self.name, tag, data, descriptor.mediaType)


def copy_in(repository: Repository, reference: str, store: Store) -> Descriptor:
    """Copy the graph `reference` points to into `store`, tagged as `reference`"""
    root, data = repository.fetch_manifest(reference)
    _copy_node(repository, store, root, data)
    store.tag(root, reference)
    return root


def _copy_node(source: Repository, store: Store, node: Descriptor, data: bytes):
    for child in successors(node, data):
        if store.exists(child):
            continue
        _copy_node(source, store, child, source.fetch(child))
    store.push(node, data)


def copy_graph(store: Store, repository: Repository, root: Descriptor):
    """Copy the graph rooted at `root` from `store` to `repository`

    Children are pushed before their parents, so a manifest is only
    pushed once everything it references exists remotely.
    """
    data = store.fetch(root)
    for child in successors(root, data):
        if repository.exists(child):
            logger.debug("Already exists: %r@%s", repository, child.digest)
            continue
        copy_graph(store, repository, child)
    repository.push(root, data)
