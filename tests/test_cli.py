import functools
import logging

import httpx
import pytest
from click.testing import CliRunner

import sociregistry
from sociregistry.__main__ import EXIT_UNSUPPORTED_REGISTRY, cli
from sociregistry.errors import UNSUPPORTED_MANIFEST_MESSAGE
from sociregistry.oci import Store


@pytest.fixture
def runner(monkeypatch, registry):
    monkeypatch.setattr(
        sociregistry,
        "RegistryClient",
        functools.partial(
            sociregistry.RegistryClient, transport=httpx.MockTransport(registry)
        ),
    )
    yield CliRunner()
    # The CLI configures logging with handlers bound to the runner's streams
    logger = logging.getLogger("sociregistry")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def invoke(runner, *args):
    return runner.invoke(cli, ["-r", "registry.example.com", *args])


def test_pull(runner, registry, tmp_path):
    image = registry.add_image(tag="latest")

    result = invoke(runner, "pull", "app", "latest", "--store", str(tmp_path))

    assert result.exit_code == 0, result.output
    assert image.digest in result.output
    assert Store(tmp_path).resolve("latest") == image


def test_push(runner, registry, store, artifact):
    store.tag(artifact, "soci")

    result = invoke(
        runner, "push", "app", "soci", "--store", str(store.path), "--tag", "soci-v2"
    )

    assert result.exit_code == 0, result.output
    assert registry.tagged == ["soci-v2"]
    assert artifact.digest in registry.manifests


def test_push_unsupported_registry(runner, registry, store, artifact):
    registry.reject_manifests = (
        405,
        {"errors": [{"code": "UNSUPPORTED", "message": UNSUPPORTED_MANIFEST_MESSAGE}]},
    )
    store.tag(artifact, "soci")

    result = invoke(runner, "push", "app", "soci", "--store", str(store.path))

    assert result.exit_code == EXIT_UNSUPPORTED_REGISTRY


def test_push_unknown_reference(runner, store):
    result = invoke(runner, "push", "app", "missing", "--store", str(store.path))
    assert result.exit_code == 1
    assert "not found in local store" in result.output


def test_head(runner, registry):
    image = registry.add_image(tag="latest")

    result = invoke(runner, "head", "app", "latest")

    assert result.exit_code == 0, result.output
    assert image.digest in result.output


@pytest.mark.parametrize("version", ["V1", "V2"])
def test_validate(runner, registry, version):
    image = registry.add_image()

    result = invoke(runner, "validate", "app", image.digest, "--index-version", version)

    assert result.exit_code == 0, result.output


def test_validate_invalid(runner, registry):
    index = registry.add_index([registry.add_image(tag=None)])

    result = invoke(runner, "validate", "app", index.digest, "--index-version", "V1")

    assert result.exit_code == 1
    assert "not a valid image manifest" in result.output


def test_validate_unknown_version(runner, registry):
    image = registry.add_image()
    result = invoke(runner, "validate", "app", image.digest, "--index-version", "V3")
    assert result.exit_code == 2
