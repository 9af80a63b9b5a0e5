"""OCI registry transfer library

This module provides a Python API for the subset of the OCI registry API
needed to copy artifact graphs between a registry and a local OCI layout.
"""
from sociregistry.oci.client import Client, TokenAuth
from sociregistry.oci.descriptor import Descriptor, Platform, compute_digest, is_digest
from sociregistry.oci.manifest import (
    IMAGE_CONFIG_MEDIA_TYPES,
    INDEX_MEDIA_TYPES,
    MEDIA_TYPE_DOCKER_IMAGE_CONFIG,
    MEDIA_TYPE_DOCKER_MANIFEST,
    MEDIA_TYPE_DOCKER_MANIFEST_LIST,
    MEDIA_TYPE_OCI_ARTIFACT_MANIFEST,
    MEDIA_TYPE_OCI_IMAGE_CONFIG,
    MEDIA_TYPE_OCI_INDEX,
    MEDIA_TYPE_OCI_MANIFEST,
    Index,
    Manifest,
    is_index_type,
    successors,
)
from sociregistry.oci.store import Store
from sociregistry.oci.transfer import Repository, copy_graph, copy_in

__all__ = [
    "Client",
    "TokenAuth",
    "Descriptor",
    "Platform",
    "compute_digest",
    "is_digest",
    "IMAGE_CONFIG_MEDIA_TYPES",
    "INDEX_MEDIA_TYPES",
    "MEDIA_TYPE_DOCKER_IMAGE_CONFIG",
    "MEDIA_TYPE_DOCKER_MANIFEST",
    "MEDIA_TYPE_DOCKER_MANIFEST_LIST",
    "MEDIA_TYPE_OCI_ARTIFACT_MANIFEST",
    "MEDIA_TYPE_OCI_IMAGE_CONFIG",
    "MEDIA_TYPE_OCI_INDEX",
    "MEDIA_TYPE_OCI_MANIFEST",
    "Index",
    "Manifest",
    "is_index_type",
    "successors",
    "Store",
    "Repository",
    "copy_graph",
    "copy_in",
]
