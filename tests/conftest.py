import json
import re
import uuid

import httpx
import pytest

from sociregistry import RegistryClient, Settings
from sociregistry.oci import Descriptor, Store, compute_digest
from sociregistry.oci.manifest import (
    MEDIA_TYPE_DOCKER_IMAGE_CONFIG,
    MEDIA_TYPE_DOCKER_MANIFEST,
    MEDIA_TYPE_OCI_INDEX,
    MEDIA_TYPE_OCI_MANIFEST,
)

REGISTRY = "registry.example.com"
SOCI_INDEX_V2 = "application/vnd.amazon.soci.index.v2+json"

MANIFEST_PATH = re.compile(r"^/v2/(?P<name>.+)/manifests/(?P<reference>[^/]+)$")
BLOB_PATH = re.compile(r"^/v2/(?P<name>.+)/blobs/(?P<digest>[^/]+)$")
UPLOAD_PATH = re.compile(r"^/v2/(?P<name>.+)/blobs/uploads/(?P<session>[^/]*)$")


class FakeRegistry:
    """In memory registry, to be served by httpx.MockTransport

    Content is shared between repositories.
    """

    def __init__(self):
        self.manifests: dict[str, tuple[str, bytes]] = {}
        self.blobs: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.tagged: list[str] = []
        self.uploads = 0
        # (status code, json body) returned when a manifest is pushed
        self.reject_manifests: tuple[int, dict] | None = None
        self.reject_tags: tuple[int, dict] | None = None
        self.head_digest = True

    def add_blob(self, data: bytes, media_type: str) -> Descriptor:
        descriptor = Descriptor.from_bytes(data, media_type)
        self.blobs[descriptor.digest] = data
        return descriptor

    def add_manifest(
        self, content: dict | bytes, media_type: str, tag: str | None = None
    ) -> Descriptor:
        data = content if isinstance(content, bytes) else json.dumps(content).encode()
        descriptor = Descriptor.from_bytes(data, media_type)
        self.manifests[descriptor.digest] = (media_type, data)
        if tag is not None:
            self.manifests[tag] = (media_type, data)
        return descriptor

    def add_image(
        self,
        tag: str | None = "latest",
        config_media_type: str = MEDIA_TYPE_DOCKER_IMAGE_CONFIG,
        media_type: str = MEDIA_TYPE_DOCKER_MANIFEST,
    ) -> Descriptor:
        config = self.add_blob(b'{"architecture": "amd64", "os": "linux"}', "")
        layer = self.add_blob(
            uuid.uuid4().bytes, "application/vnd.docker.image.rootfs.diff.tar.gzip"
        )
        content = {
            "schemaVersion": 2,
            "mediaType": media_type,
            "config": {
                "mediaType": config_media_type,
                "digest": config.digest,
                "size": config.size,
            },
            "layers": [
                {"mediaType": layer.mediaType, "digest": layer.digest, "size": layer.size}
            ],
        }
        return self.add_manifest(content, media_type, tag=tag)

    def add_index(
        self,
        manifests: list[Descriptor],
        tag: str | None = None,
        media_type: str = MEDIA_TYPE_OCI_INDEX,
    ) -> Descriptor:
        content = {
            "schemaVersion": 2,
            "mediaType": media_type,
            "manifests": [
                {
                    "mediaType": m.mediaType,
                    "digest": m.digest,
                    "size": m.size,
                    "platform": {"architecture": "amd64", "os": "linux"},
                }
                for m in manifests
            ],
        }
        return self.add_manifest(content, media_type, tag=tag)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if match := UPLOAD_PATH.match(path):
            return self._upload(request, match)
        if match := MANIFEST_PATH.match(path):
            return self._manifest(request, match["reference"])
        if match := BLOB_PATH.match(path):
            return self._blob(request, match["digest"])
        return _error(404, "NAME_UNKNOWN", "repository name not known to registry")

    def _manifest(self, request: httpx.Request, reference: str) -> httpx.Response:
        if request.method == "PUT":
            return self._push_manifest(request, reference)
        if reference not in self.manifests:
            return _error(404, "MANIFEST_UNKNOWN", "manifest unknown")
        media_type, data = self.manifests[reference]
        headers = {"Content-Type": media_type}
        if self.head_digest:
            headers["Docker-Content-Digest"] = compute_digest(data)
        if request.method == "HEAD":
            headers["Content-Length"] = str(len(data))
            return httpx.Response(200, headers=headers)
        return httpx.Response(200, headers=headers, content=data)

    def _push_manifest(self, request: httpx.Request, reference: str) -> httpx.Response:
        is_tag = not reference.startswith("sha256:")
        rejection = self.reject_tags if is_tag else self.reject_manifests
        if rejection is not None:
            status_code, body = rejection
            return httpx.Response(status_code, json=body)
        data = request.read()
        media_type = request.headers["content-type"]
        self.manifests[compute_digest(data)] = (media_type, data)
        if is_tag:
            self.tagged.append(reference)
            self.manifests[reference] = (media_type, data)
        return httpx.Response(201)

    def _blob(self, request: httpx.Request, digest: str) -> httpx.Response:
        if digest not in self.blobs:
            return _error(404, "BLOB_UNKNOWN", "blob unknown to registry")
        data = self.blobs[digest]
        if request.method == "HEAD":
            return httpx.Response(200, headers={"Content-Length": str(len(data))})
        return httpx.Response(200, content=data)

    def _upload(self, request: httpx.Request, match: re.Match) -> httpx.Response:
        if request.method == "POST":
            self.uploads += 1
            location = f"/v2/{match['name']}/blobs/uploads/{uuid.uuid4()}"
            return httpx.Response(202, headers={"Location": location})
        data = request.read()
        digest = request.url.params["digest"]
        if compute_digest(data) != digest:
            return _error(400, "DIGEST_INVALID", "provided digest did not match")
        self.blobs[digest] = data
        return httpx.Response(201)


def _error(status_code: int, code: str, message: str) -> httpx.Response:
    return httpx.Response(
        status_code, json={"errors": [{"code": code, "message": message}]}
    )


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def client(registry):
    with RegistryClient(
        REGISTRY, settings=Settings(), transport=httpx.MockTransport(registry)
    ) as client:
        yield client


@pytest.fixture
def store(tmp_path) -> Store:
    return Store(tmp_path / "store")


@pytest.fixture
def artifact(store) -> Descriptor:
    """A SOCI index like artifact in `store`"""
    ztoc = b"ztoc" + uuid.uuid4().bytes
    layer = Descriptor.from_bytes(ztoc, "application/octet-stream")
    store.push(layer, ztoc)
    config = Descriptor.from_bytes(b"{}", "application/vnd.oci.empty.v1+json")
    store.push(config, b"{}")
    manifest = {
        "schemaVersion": 2,
        "mediaType": MEDIA_TYPE_OCI_MANIFEST,
        "artifactType": SOCI_INDEX_V2,
        "config": config.model_dump(exclude_none=True),
        "layers": [layer.model_dump(exclude_none=True)],
    }
    data = json.dumps(manifest).encode()
    descriptor = Descriptor.from_bytes(data, MEDIA_TYPE_OCI_MANIFEST)
    store.push(descriptor, data)
    return descriptor
