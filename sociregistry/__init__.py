"""Registry client for building and publishing SOCI indexes

Pulls images into a local OCI layout, pushes SOCI artifacts back to
the registry and validates image digests. Amazon ECR registries are
authorized automatically.
"""
from sociregistry import oci
from sociregistry.auth import (
    Credential,
    CredentialSupplier,
    EcrCredentialSupplier,
    StaticCredentialSupplier,
    is_ecr_registry,
)
from sociregistry.config import Settings
from sociregistry.errors import (
    AuthError,
    DecodeError,
    RegistryError,
    TagError,
    TransferError,
    UnsupportedPolicyError,
    UnsupportedRegistryError,
    ValidationError,
)
from sociregistry.oci import Descriptor, Manifest, Store
from sociregistry.registry import RegistryClient
from sociregistry.validator import IndexVersion, ManifestValidator

__all__ = [
    "oci",
    "Credential",
    "CredentialSupplier",
    "EcrCredentialSupplier",
    "StaticCredentialSupplier",
    "is_ecr_registry",
    "Settings",
    "AuthError",
    "DecodeError",
    "RegistryError",
    "TagError",
    "TransferError",
    "UnsupportedPolicyError",
    "UnsupportedRegistryError",
    "ValidationError",
    "Descriptor",
    "Manifest",
    "Store",
    "RegistryClient",
    "IndexVersion",
    "ManifestValidator",
]
