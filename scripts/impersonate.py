#!/usr/bin/python3
# Usage:
#  > DEPLOYER=0x... ape run impersonate --network ethereum:mainnet-fork:foundry

import os

import click
from ape import accounts, chain, networks
from ape.cli import ConnectedProviderCommand, network_option

from orchestrator.ape_backend import is_local_network
from orchestrator.types import ChecksumAddress

DEPLOYER_ENVVAR = "DEPLOYER"
IMPERSONATED_BALANCE = "1000000 ether"


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
def cli(network):
    """Impersonate and fund the deployer account on a local network or fork."""
    if not is_local_network():
        network_name = networks.provider.network.name
        raise click.ClickException(f"Impersonation is not available on live network {network_name}")

    deployer = os.environ.get(DEPLOYER_ENVVAR)
    if not deployer:
        raise click.ClickException(f"{DEPLOYER_ENVVAR} is not set.")
    deployer = ChecksumAddress().convert(deployer, None, None)

    account = accounts.test_accounts.impersonate_account(deployer)
    chain.set_balance(account.address, IMPERSONATED_BALANCE)
    click.secho(f"Impersonating {account.address} ({IMPERSONATED_BALANCE})", fg="green")


if __name__ == "__main__":
    cli()
