#!/usr/bin/python3
# Usage:
#  > ape run deploy_strategies --network ethereum:mainnet -p strategies/mainnet.yml -s Yearn_vUSDC

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from orchestrator.ape_backend import check_plugins, get_deployment_context
from orchestrator.declarations import DeclarationError, StrategyDeclarations
from orchestrator.deploy import InvalidInitializer
from orchestrator.layout import UpgradeIncompatible
from orchestrator.options import multisig_dir_option, params_filepath_option, strategy_option
from orchestrator.strategy import deploy_and_configure_strategy


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@params_filepath_option
@strategy_option
@multisig_dir_option
@click.option(
    "--verify/--no-verify",
    help="Verify contracts on the block explorer",
    default=True,
)
@click.option(
    "--auto",
    help="Automatically sign transactions.",
    is_flag=True,
)
def cli(network, account, params_filepath, strategies, multisig_dir, verify, auto):
    """Deploy, upgrade and configure the declared strategies."""
    check_plugins()
    declarations = StrategyDeclarations.from_yaml(filepath=params_filepath)
    context = get_deployment_context(
        account=account, verify=verify, autosign=auto, multisig_dir=multisig_dir
    )

    try:
        declarations.validate(context)
        selected = declarations.select(strategies)
    except (DeclarationError, InvalidInitializer) as e:
        raise click.ClickException(str(e))

    incompatible = list()
    for declaration in selected:
        click.secho(f"\n{declaration.alias} ({declaration.contract})", fg="green")
        params, config = declaration.resolve(context, declarations.constants)
        try:
            deploy_and_configure_strategy(context, params, config)
        except UpgradeIncompatible as e:
            click.secho(str(e), fg="red")
            incompatible.append(declaration.alias)

    pending = len(context.batch)
    if pending:
        click.secho(
            f"\n{pending} transaction(s) must be executed by the safe; "
            f"see {context.batch.filepath}",
            fg="yellow",
        )
    if incompatible:
        raise click.ClickException(f"Upgrade not safe for: {', '.join(incompatible)}")


if __name__ == "__main__":
    cli()
