"""Authentication against Amazon ECR registries.

ECR does not implement the registry token flow, a token is requested
from the ECR API with the AWS credentials of the process instead.

ref: https://docs.aws.amazon.com/AmazonECR/latest/APIReference/API_GetAuthorizationToken.html
"""
from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from sociregistry.config import USER_AGENT
from sociregistry.errors import AuthError
from sociregistry.oci.client import Client

logger = logging.getLogger(__name__)

# Compiled on import, an invalid pattern fails at startup
ECR_REGISTRY_PATTERN = re.compile(
    r"(?P<account>\d{12})\.dkr\.ecr\.(?P<region>[a-z0-9-]+)"
    r"\.amazonaws\.com(?:\.cn)?(?::\d+)?"
)


def _host(registry_url: str) -> str:
    if "://" not in registry_url:
        registry_url = f"//{registry_url}"
    return urlparse(registry_url).netloc


def ecr_region(registry_url: str) -> str | None:
    """Return the region of an ECR registry, None for any other registry"""
    match = ECR_REGISTRY_PATTERN.fullmatch(_host(registry_url))
    return match["region"] if match else None


def is_ecr_registry(registry_url: str) -> bool:
    return ecr_region(registry_url) is not None


@dataclass(frozen=True, slots=True)
class Credential:
    token: str
    expires_at: datetime | None = None

    def expired(self, margin: timedelta = timedelta()) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) + margin >= self.expires_at


class CredentialSupplier(Protocol):
    def get(self) -> Credential:
        ...


class StaticCredentialSupplier:
    """Always supply the same credential, it is never refreshed."""

    def __init__(self, credential: Credential):
        self.credential = credential

    def get(self) -> Credential:
        return self.credential


class EcrCredentialSupplier:
    """Supply ECR authorization tokens.

    The token is cached until `refresh_margin` before it expires,
    after which the next call to `get` requests a new one.
    """

    def __init__(
        self,
        region: str | None = None,
        endpoint_url: str | None = None,
        client=None,
        refresh_margin: timedelta = timedelta(minutes=5),
    ):
        self.region = region
        self.endpoint_url = endpoint_url
        self.refresh_margin = refresh_margin
        self._client = client
        self._credential: Credential | None = None
        self._lock = threading.Lock()

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "ecr", region_name=self.region, endpoint_url=self.endpoint_url
            )
        return self._client

    def get(self) -> Credential:
        with self._lock:
            if self._credential is None or self._credential.expired(
                self.refresh_margin
            ):
                self._credential = self.fetch()
            return self._credential

    def fetch(self) -> Credential:
        logger.debug("Requesting ECR authorization token")
        try:
            response = self.client.get_authorization_token()
        except (BotoCoreError, ClientError) as e:
            raise AuthError(f"Couldn't authorize with ECR: {e}") from e

        authorization_data = response.get("authorizationData") or []
        if not authorization_data:
            raise AuthError(
                "Couldn't authorize with ECR: empty authorization data returned"
            )
        if len(authorization_data) > 1:
            logger.debug(
                "Got %d authorization entries, using the first",
                len(authorization_data),
            )
        token = authorization_data[0].get("authorizationToken")
        if not token:
            raise AuthError(
                "Couldn't authorize with ECR: empty authorization token returned"
            )
        return Credential(token=token, expires_at=authorization_data[0].get("expiresAt"))


class EcrAuth:
    """Attaches the ECR token as HTTP Basic Authentication to the given Request object."""

    def __init__(self, supplier: CredentialSupplier):
        self.supplier = supplier

    def __call__(self, request):
        request.headers["Authorization"] = f"Basic {self.supplier.get().token}"
        return request


def authorize(client: Client, supplier: CredentialSupplier, user_agent: str = USER_AGENT):
    """Install ECR authentication on `client`

    A credential is requested right away so failures surface here
    instead of on the first registry call.
    """
    supplier.get()
    client.auth = EcrAuth(supplier)
    client.headers["User-Agent"] = user_agent
    logger.info("Authorized with ECR registry %s", client.host)
