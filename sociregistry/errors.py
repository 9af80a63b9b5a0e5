"""Exceptions raised by the registry client.

ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#error-codes
"""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# Body ECR returns when a manifest schema it does not understand is pushed.
UNSUPPORTED_MANIFEST_MESSAGE = (
    "Invalid parameter at 'ImageManifest' failed to satisfy constraint: "
    "'Invalid JSON syntax'"
)
UNSUPPORTED_MANIFEST_ERROR = (
    f"Response status code 405: unsupported: {UNSUPPORTED_MANIFEST_MESSAGE}"
)


class RegistryError(Exception):
    """Base exception for all registry client errors."""


class AuthError(RegistryError):
    """Raised when registry credentials can not be obtained."""


class TransferError(RegistryError):
    """Raised when a registry or local store operation fails."""

    def __init__(
        self,
        message: str,
        operation: str,
        repository: str | None = None,
        reference: str | None = None,
        status_code: int | None = None,
        errors: list[dict] | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.repository = repository
        self.reference = reference
        self.status_code = status_code
        self.errors = errors or []

    def __str__(self):
        target = ":".join(filter(None, [self.repository, self.reference]))
        prefix = f"{self.operation} {target}".strip()
        return f"{prefix}: {self.args[0]}"


class TagError(TransferError):
    """Raised when tagging fails after the content was copied."""


class UnsupportedRegistryError(RegistryError):
    """Raised when the registry does not accept OCI artifacts."""

    def __init__(self, message: str = "Registry does not support OCI artifacts"):
        super().__init__(message)


class DecodeError(RegistryError):
    """Raised when fetched content is not a valid manifest."""


class ValidationError(RegistryError):
    """Raised when a digest does not point to the expected kind of artifact."""


class UnsupportedPolicyError(ValidationError, ValueError):
    """Raised for an index version outside the supported set."""


def is_unsupported_manifest(error: TransferError) -> bool:
    """Return True when `error` is the registry rejecting OCI manifests"""
    if error.status_code == 405:
        for entry in error.errors:
            if entry.get("code", "").upper() == "UNSUPPORTED" and (
                UNSUPPORTED_MANIFEST_MESSAGE in entry.get("message", "")
            ):
                return True
    # Compatibility with errors that only carry the formatted message
    return UNSUPPORTED_MANIFEST_ERROR in str(error)


def classify_push_error(error: TransferError) -> RegistryError:
    """Translate a failed graph copy into the error raised by `push`"""
    if is_unsupported_manifest(error):
        logger.warning("Error when pushing: %s", error)
        return UnsupportedRegistryError()
    return error
