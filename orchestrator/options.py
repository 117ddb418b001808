from pathlib import Path

import click

from orchestrator.constants import DEPLOYMENTS_DIR, MULTISIG_DIR, RELEASES_DIR
from orchestrator.types import SemanticVersion

release_option = click.option(
    "--release",
    "-r",
    help="Strategies release semantic version, i.e 1.2.3",
    type=SemanticVersion(),
    required=True,
)

deployments_dir_option = click.option(
    "--deployments-dir",
    help="Directory holding one deployments directory per network",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEPLOYMENTS_DIR,
    show_default=True,
)

releases_dir_option = click.option(
    "--releases-dir",
    help="Directory holding one directory per release",
    type=click.Path(file_okay=False, path_type=Path),
    default=RELEASES_DIR,
    show_default=True,
)

multisig_dir_option = click.option(
    "--multisig-dir",
    help="Directory holding the pending multisig transactions of each network",
    type=click.Path(file_okay=False, path_type=Path),
    default=MULTISIG_DIR,
    show_default=True,
)

params_filepath_option = click.option(
    "--params-filepath",
    "-p",
    help="Strategy declarations YAML file",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)

strategy_option = click.option(
    "--strategy",
    "-s",
    "strategies",
    help="Alias of a declared strategy to deploy; all of them if omitted",
    multiple=True,
)
