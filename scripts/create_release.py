#!/usr/bin/python3

import click

from orchestrator.options import deployments_dir_option, release_option, releases_dir_option
from orchestrator.release import create_release


@click.command()
@release_option
@deployments_dir_option
@releases_dir_option
@click.option(
    "--network-name",
    "-n",
    "networks",
    help="Network to release; every deployed network if omitted",
    multiple=True,
)
def cli(release, deployments_dir, releases_dir, networks):
    """Create (or update) a release manifest from the deployments of each network."""
    failures = create_release(
        version=release,
        deployments_dir=deployments_dir,
        releases_dir=releases_dir,
        networks=networks or None,
    )
    if failures:
        raise click.ClickException(
            f"Release {release} is incomplete; failed network(s): {', '.join(failures)}"
        )


if __name__ == "__main__":
    cli()
