"""Local content-addressable store in the OCI image layout

ref: https://github.com/opencontainers/image-spec/blob/main/image-layout.md
"""
import json
import logging
import threading
from pathlib import Path

from sociregistry.errors import TransferError
from sociregistry.oci.descriptor import Descriptor, compute_digest, is_digest
from sociregistry.oci.manifest import Index

logger = logging.getLogger(__name__)

REF_NAME_ANNOTATION = "org.opencontainers.image.ref.name"
OCI_LAYOUT = {"imageLayoutVersion": "1.0.0"}


class Store:
    """OCI image layout directory holding blobs and tagged manifests"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self.path.mkdir(parents=True, exist_ok=True)
        layout = self.path / "oci-layout"
        if not layout.exists():
            layout.write_text(json.dumps(OCI_LAYOUT))

    def __repr__(self):
        return f"{self.__class__.__name__}({str(self.path)!r})"

    def blob_path(self, digest: str) -> Path:
        algorithm, encoded = digest.split(":", 1)
        return self.path / "blobs" / algorithm / encoded

    def exists(self, descriptor: Descriptor) -> bool:
        return self.blob_path(descriptor.digest).is_file()

    def fetch(self, descriptor: Descriptor) -> bytes:
        path = self.blob_path(descriptor.digest)
        if not path.is_file():
            raise TransferError(
                "not found in local store", operation="fetch", reference=descriptor.digest
            )
        return path.read_bytes()

    def push(self, descriptor: Descriptor, data: bytes):
        """Write `data` as the blob for `descriptor`"""
        if descriptor.digest.startswith("sha256:"):
            digest = compute_digest(data)
            if digest != descriptor.digest or len(data) != descriptor.size:
                raise TransferError(
                    f"content has digest {digest} and size {len(data)}",
                    operation="push",
                    reference=descriptor.digest,
                )
        path = self.blob_path(descriptor.digest)
        if path.is_file():
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)

    def index(self) -> Index:
        path = self.path / "index.json"
        if not path.exists():
            return Index()
        return Index.model_validate_json(path.read_bytes())

    def tag(self, descriptor: Descriptor, reference: str):
        """Record `descriptor` in index.json under `reference`"""
        if not self.exists(descriptor):
            raise TransferError(
                "not found in local store", operation="tag", reference=descriptor.digest
            )
        annotations = dict(descriptor.annotations or {})
        annotations[REF_NAME_ANNOTATION] = reference
        tagged = descriptor.model_copy(update={"annotations": annotations})
        with self._lock:
            index = self.index()
            manifests = [
                m
                for m in index.manifests
                if (m.annotations or {}).get(REF_NAME_ANNOTATION) != reference
            ]
            manifests.append(tagged)
            index = index.model_copy(update={"manifests": manifests})
            (self.path / "index.json").write_text(
                index.model_dump_json(exclude_none=True, indent=2)
            )
        logger.debug("Tagged %s as %s in %s", descriptor.digest, reference, self)

    def resolve(self, reference: str) -> Descriptor:
        for descriptor in self.index().manifests:
            annotations = descriptor.annotations or {}
            if annotations.get(REF_NAME_ANNOTATION) == reference:
                return descriptor
            if is_digest(reference) and descriptor.digest == reference:
                return descriptor
        raise TransferError(
            "not found in local store", operation="resolve", reference=reference
        )
