#!/usr/bin/python3

import json
from pathlib import Path

import click

from orchestrator.constants import STANDARD_JSON_FORMAT
from orchestrator.options import multisig_dir_option
from orchestrator.safe import SafeBatch, transaction_builder_batch
from orchestrator.types import ChecksumAddress


@click.command()
@click.option(
    "--network-name",
    "-n",
    help="Network whose pending transactions are exported",
    required=True,
)
@click.option(
    "--safe",
    help="Address of the safe executing the transactions",
    type=ChecksumAddress(),
    required=True,
)
@click.option(
    "--chain-id",
    help="Chain ID of the network",
    type=int,
    required=True,
)
@click.option(
    "--output-filepath",
    "-o",
    help="Filepath of the Transaction Builder batch; printed if omitted",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)
@multisig_dir_option
@click.option(
    "--clear",
    help="Remove the pending transactions once exported",
    is_flag=True,
)
def cli(network_name, safe, chain_id, output_filepath, multisig_dir, clear):
    """Export the pending multisig transactions of a network for the Safe Transaction Builder."""
    batch = SafeBatch(Path(multisig_dir) / f"{network_name}.json")
    transactions = batch.read()
    if not transactions:
        click.secho(f"No pending transactions in {batch.filepath}", fg="yellow")
        return

    try:
        data = transaction_builder_batch(
            transactions=transactions, chain_id=chain_id, safe_address=safe
        )
    except ValueError as e:
        raise click.ClickException(str(e))

    if output_filepath:
        with open(output_filepath, "w") as file:
            json.dump(data, file, **STANDARD_JSON_FORMAT)
        click.secho(f"Exported {len(transactions)} transaction(s) to {output_filepath}", fg="green")
    else:
        click.echo(json.dumps(data, **STANDARD_JSON_FORMAT))

    if clear:
        batch.clear()
        print(f"(i) Cleared {batch.filepath}")


if __name__ == "__main__":
    cli()
