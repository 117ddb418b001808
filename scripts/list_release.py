#!/usr/bin/python3

import json

import click

from orchestrator.options import releases_dir_option
from orchestrator.release import get_previous_release, release_filepath
from orchestrator.types import SemanticVersion


def _read_manifest(releases_dir, release):
    """Reads the manifest of `release`, or of the latest release if omitted."""
    if release is None:
        return get_previous_release(releases_dir)
    filepath = release_filepath(releases_dir, release)
    if not filepath.exists():
        raise click.ClickException(f"No release {release} in {releases_dir}")
    with open(filepath, "r") as file:
        return json.load(file)


@click.command(name="list-release")
@releases_dir_option
@click.option(
    "--release",
    "-r",
    help="Release to list; the latest one if omitted",
    type=SemanticVersion(),
    required=False,
)
@click.option(
    "--network-name",
    "-n",
    help="Only list the contracts of this network",
    required=False,
)
def cli(releases_dir, release, network_name):
    """List the contracts of a release, grouped by network."""
    manifest = _read_manifest(releases_dir, release)
    if not manifest:
        click.secho(f"No release found in {releases_dir}", fg="yellow")
        return

    click.secho(f"\nRelease {manifest['version']}", fg="green")
    for network, contracts in manifest.get("networks", dict()).items():
        if network_name and network != network_name:
            continue
        click.secho(f"    {network.capitalize()}", fg="yellow")
        for index, (name, address) in enumerate(contracts.items(), start=1):
            click.secho(f"        {index}. {name} {address}", fg="cyan")


if __name__ == "__main__":
    cli()
