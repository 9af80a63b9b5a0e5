import logging
import logging.config
from pathlib import Path

import click

import sociregistry
from sociregistry.config import Settings

logger = logging.getLogger("sociregistry")

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "sociregistry": {"handlers": ["default"], "level": "INFO", "propagate": False},
    },
}

# Exit code when the registry does not accept OCI artifacts
EXIT_UNSUPPORTED_REGISTRY = 2


class Registry:
    def __init__(
        self,
        registry: str,
        username: str | None = None,
        password: str | None = None,
        insecure: bool = False,
        ecr_endpoint: str | None = None,
        debug: bool = False,
    ):
        logging.config.dictConfig(LOGGING_CONFIG)
        if debug:
            logging.getLogger("sociregistry").setLevel(logging.DEBUG)
        self.registry = registry
        self.username = username
        self.password = password
        self.insecure = insecure
        self.settings = Settings(ecr_endpoint=ecr_endpoint)

    def client(self) -> sociregistry.RegistryClient:
        try:
            return sociregistry.RegistryClient(
                self.registry,
                username=self.username,
                password=self.password,
                insecure=self.insecure,
                settings=self.settings,
            )
        except sociregistry.RegistryError as e:
            raise click.ClickException(str(e)) from e


@click.group()
@click.option("-r", "--registry", help="Registry URL", required=True)
@click.option("-u", "--username", help="Username", default=None)
@click.option("-p", "--password", help="Password", default=None)
@click.option("--insecure", help="Use plain HTTP", is_flag=True)
@click.option(
    "--ecr-endpoint",
    help="Custom ECR API endpoint",
    envvar="ECR_ENDPOINT",
    default=None,
)
@click.option("-d", "--debug", help="Debug output", is_flag=True)
@click.pass_context
def cli(ctx, registry, username, password, insecure, ecr_endpoint, debug):
    ctx.obj = Registry(
        registry=registry,
        username=username,
        password=password,
        insecure=insecure,
        ecr_endpoint=ecr_endpoint,
        debug=debug,
    )


store_option = click.option(
    "--store",
    help="Local OCI layout directory",
    default="store",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
)


@cli.command()
@click.argument("repository")
@click.argument("reference")
@store_option
@click.pass_obj
def pull(obj: Registry, repository: str, reference: str, store: Path):
    """Pull an image into the local store."""
    with obj.client() as client:
        try:
            descriptor = client.pull(repository, reference, sociregistry.Store(store))
        except sociregistry.RegistryError as e:
            raise click.ClickException(str(e)) from e
    click.echo(descriptor.digest)


@cli.command()
@click.argument("repository")
@click.argument("reference")
@store_option
@click.option("--tag", help="Tag the artifact in the registry", default="")
@click.pass_obj
def push(obj: Registry, repository: str, reference: str, store: Path, tag: str):
    """Push an artifact from the local store to the registry."""
    local = sociregistry.Store(store)
    with obj.client() as client:
        try:
            descriptor = local.resolve(reference)
            client.push(local, descriptor, repository, tag=tag)
        except sociregistry.UnsupportedRegistryError as e:
            logger.warning("Skipping push to %s: %s", repository, e)
            raise SystemExit(EXIT_UNSUPPORTED_REGISTRY)
        except sociregistry.RegistryError as e:
            raise click.ClickException(str(e)) from e
    click.echo(descriptor.digest)


@cli.command()
@click.argument("repository")
@click.argument("reference")
@click.pass_obj
def head(obj: Registry, repository: str, reference: str):
    """Print the descriptor of a manifest."""
    with obj.client() as client:
        try:
            descriptor = client.head_manifest(repository, reference)
        except sociregistry.RegistryError as e:
            raise click.ClickException(str(e)) from e
    click.echo(descriptor.model_dump_json(exclude_none=True))


@cli.command()
@click.argument("repository")
@click.argument("digest")
@click.option(
    "--index-version",
    help="SOCI index version the image is validated for",
    type=click.Choice([v.value for v in sociregistry.IndexVersion]),
    default=sociregistry.IndexVersion.V2.value,
)
@click.pass_obj
def validate(obj: Registry, repository: str, digest: str, index_version: str):
    """Check a digest can be used to build a SOCI index."""
    with obj.client() as client:
        try:
            client.validate_image_digest(repository, digest, index_version)
        except sociregistry.RegistryError as e:
            raise click.ClickException(str(e)) from e
    click.echo(f"{digest} is valid for SOCI index {index_version}")


if __name__ == "__main__":
    cli()
