from __future__ import annotations

import base64
import json
import logging
import re
from urllib.parse import urlparse

import httpx

from sociregistry.errors import AuthError, TransferError
from sociregistry.oci.descriptor import Descriptor, is_digest
from sociregistry.oci.manifest import ACCEPT_MANIFESTS, is_manifest_type

logger = logging.getLogger(__name__)

DOCKER_HUB = "registry-1.docker.io"

# Quoted values may contain commas, e.g. scope="repository:app:pull,push"
WWW_AUTH_PARAM = re.compile(r'(\w+)="([^"]*)"')


def _clean_url(registry_url: str, insecure: bool = False) -> str:
    if "://" not in registry_url:
        scheme = "http" if insecure else "https"
        registry_url = f"{scheme}://{registry_url}"
    parts = urlparse(registry_url)
    if not parts.netloc:
        raise ValueError(f"Invalid registry url: {registry_url!r}")
    if parts.netloc == "docker.io":
        parts = parts._replace(netloc=DOCKER_HUB)
    return f"{parts.scheme}://{parts.netloc}"


def _parse_www_auth(www_authenticate: str) -> dict[str, str]:
    """Parse the WWW-Authenticate header"""
    return dict(WWW_AUTH_PARAM.findall(www_authenticate.removeprefix("Bearer ")))


class TokenAuth(httpx.Auth):
    """Answer bearer token challenges of the registry.

    Tokens are requested anonymously, or with basic authentication
    when a password is given, and kept per scope.

    ref: https://distribution.github.io/distribution/spec/auth/token/
    """

    requires_response_body = True

    def __init__(self, username: str | None = None, password: str | None = None):
        self.username = username
        self.password = password
        self._tokens: dict[str | None, str] = {}

    def auth_flow(self, request):
        response = yield request
        challenge = response.headers.get("WWW-Authenticate", "")
        if response.status_code != 401 or not challenge.startswith("Bearer "):
            return
        www_authenticate = _parse_www_auth(challenge)
        logger.debug(www_authenticate)
        scope = www_authenticate.get("scope")
        if scope not in self._tokens:
            token_response = yield self._token_request(www_authenticate)
            if not token_response.is_success:
                raise AuthError(
                    f"Token request to {www_authenticate['realm']} failed "
                    f"with status code {token_response.status_code}"
                )
            body = token_response.json()
            self._tokens[scope] = body.get("token") or body["access_token"]
        request.headers["Authorization"] = f"Bearer {self._tokens[scope]}"
        yield request

    def _token_request(self, www_authenticate: dict[str, str]) -> httpx.Request:
        params = {
            key: www_authenticate[key]
            for key in ("service", "scope")
            if key in www_authenticate
        }
        request = httpx.Request("GET", www_authenticate["realm"], params=params)
        if self.password:
            credentials = f"{self.username or ''}:{self.password}".encode("utf-8")
            request.headers["Authorization"] = (
                f"Basic {base64.b64encode(credentials).decode('ascii')}"
            )
        return request


class Client:
    """Client for the OCI registry API."""

    def __init__(
        self,
        registry_url: str,
        username: str | None = None,
        password: str | None = None,
        insecure: bool = False,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.registry_url = _clean_url(registry_url, insecure=insecure)
        self.auth = TokenAuth(username=username, password=password)
        self.headers: dict[str, str] = {}
        self.timeout = timeout
        self._transport = transport
        self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def host(self) -> str:
        return urlparse(self.registry_url).netloc

    @property
    def session(self):
        if self._session is None:
            self._session = httpx.Client(
                follow_redirects=True,
                max_redirects=2,
                auth=self.auth,
                headers=self.headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._session

    def head(self, uri, **kwargs):
        return self.session.head(f"{self.registry_url}{uri}", **kwargs)

    def get(self, uri, **kwargs):
        return self.session.get(f"{self.registry_url}{uri}", **kwargs)

    def post(self, uri, **kwargs):
        return self.session.post(f"{self.registry_url}{uri}", **kwargs)

    def put(self, uri, **kwargs):
        return self.session.put(f"{self.registry_url}{uri}", **kwargs)

    def close(self):
        if self._session is not None:
            self._session.close()
            self._session = None

    def resolve(self, name: str, reference: str) -> Descriptor:
        """Return the descriptor of a manifest without fetching its content"""
        uri = f"/v2/{name}/manifests/{reference}"
        response = self.head(uri, headers={"Accept": ACCEPT_MANIFESTS})
        response.raise_for_status()
        digest = response.headers.get("Docker-Content-Digest")
        media_type = _media_type(response)
        size = response.headers.get("Content-Length")
        if not digest or not size or not is_manifest_type(media_type):
            # Not every registry returns the full descriptor on HEAD
            descriptor, _ = self.fetch_manifest(name, reference)
            return descriptor
        if is_digest(reference) and digest != reference:
            raise TransferError(
                f"registry returned digest {digest}",
                operation="resolve",
                repository=name,
                reference=reference,
            )
        return Descriptor(mediaType=media_type, digest=digest, size=int(size))

    def fetch_manifest(
        self, name: str, reference: str, media_type: str = ACCEPT_MANIFESTS
    ) -> tuple[Descriptor, bytes]:
        uri = f"/v2/{name}/manifests/{reference}"
        response = self.get(uri, headers={"Accept": media_type})
        if response.status_code == 403:
            logger.debug(response.headers)
        response.raise_for_status()
        data = response.content
        content_type = _media_type(response)
        if not is_manifest_type(content_type):
            content_type = _body_media_type(data) or content_type
        descriptor = Descriptor.from_bytes(data, content_type)
        if reference.startswith("sha256:") and descriptor.digest != reference:
            raise TransferError(
                f"content has digest {descriptor.digest}",
                operation="fetch_manifest",
                repository=name,
                reference=reference,
            )
        return descriptor, data

    def manifest_exists(self, name: str, reference: str) -> bool:
        response = self.head(
            f"/v2/{name}/manifests/{reference}", headers={"Accept": ACCEPT_MANIFESTS}
        )
        return response.status_code == 200

    def blob_exists(self, name: str, digest: str) -> bool:
        return self.head(f"/v2/{name}/blobs/{digest}").status_code == 200

    def pull_blob(self, name, digest) -> bytes:
        uri = f"/v2/{name}/blobs/{digest}"
        result = self.get(uri)
        result.raise_for_status()
        return result.content

    def push_blob(self, name: str, blob: bytes, digest: str):
        """Push a blob for repository `name`

        ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#pushing-blobs
        """
        if self.blob_exists(name, digest):
            logger.info("Blob already exists: %s:%s", name, digest)
            return

        # Push the blob using the POST then PUT method
        response = self.post(
            f"/v2/{name}/blobs/uploads/",
            headers={"content-type": "application/octet-stream"},
        )
        response.raise_for_status()
        location = response.headers["location"]
        if location.startswith("/"):
            # Relative location, add the registry url
            put = self.put
        else:
            # Absolute location, use the location as is
            put = self.session.put
        response = put(
            location,
            content=blob,
            headers={"content-type": "application/octet-stream"},
            params={"digest": digest},
        )
        response.raise_for_status()

    def push_manifest(self, name: str, reference: str, data: bytes, media_type: str):
        """Push a manifest for repository `name` as `reference`

        `reference` is either the manifest digest or a tag.

        ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#pushing-manifests
        """
        uri = f"/v2/{name}/manifests/{reference}"
        logger.debug("Pushing manifest: %s", data)
        response = self.put(uri, content=data, headers={"content-type": media_type})
        if not response.is_success and _is_json(response):
            logger.debug(response.json())
        response.raise_for_status()


def _media_type(response: httpx.Response) -> str:
    return response.headers.get("Content-Type", "").split(";")[0].strip()


def _is_json(response: httpx.Response) -> bool:
    return bool(response.content) and "json" in _media_type(response)


def _body_media_type(data: bytes) -> str | None:
    try:
        return json.loads(data).get("mediaType")
    except (ValueError, AttributeError):
        return None
