from typing import NamedTuple, Optional

import click
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from orchestrator.constants import ERC20_ABI, MAX_UINT256, POOL_ACCOUNTANT_ABI
from orchestrator.context import DeploymentContext
from orchestrator.deploy import DeployParams, DeployResult, deploy, verify_contract
from orchestrator.governance import PrivilegedCall, execute_as_governor, execute_or_queue


class ConfigParams(NamedTuple):
    keeper: Optional[ChecksumAddress] = None
    debt_ratio: int = 0
    external_deposit_fee: int = 0


def approve_token(context: DeploymentContext, alias: str, strategy: ChecksumAddress) -> bool:
    """
    Approves the pool to pull collateral from the strategy.
    Only sent when the current allowance is exactly zero.
    """
    pool = context.read(alias, "pool")
    collateral_token = context.read(alias, "collateralToken")
    allowance = context.backend.call(collateral_token, ERC20_ABI, "allowance", [strategy, pool])
    if allowance != 0:
        return False

    record = context.store.get(alias)
    tx_hash = context.backend.transact(
        record.address, record.abi, "approveToken", [MAX_UINT256], sender=context.deployer
    )
    print(f"executing {alias}.approveToken (tx: {tx_hash})")
    return True


def add_keeper(
    context: DeploymentContext, alias: str, keeper: ChecksumAddress, governor: ChecksumAddress
) -> bool:
    """Adds `keeper` to the strategy unless it is already one of its keepers."""
    keeper = to_checksum_address(keeper)
    keepers = [to_checksum_address(k) for k in context.read(alias, "keepers")]
    if keeper in keepers:
        return False

    execute_as_governor(context, alias, "addKeeper", [keeper], governor=governor)
    return True


def add_strategy(
    context: DeploymentContext,
    alias: str,
    strategy: ChecksumAddress,
    config: ConfigParams,
) -> bool:
    """Registers the strategy with the pool accountant unless it is already active."""
    if context.read(alias, "isActive"):
        return False

    pool_accountant = to_checksum_address(context.read(alias, "poolAccountant"))
    governor = to_checksum_address(context.read(alias, "governor"))
    if governor == context.deployer:
        click.secho("Note: Deployer is governor", fg="yellow")

    call = PrivilegedCall(
        target=pool_accountant,
        abi=POOL_ACCOUNTANT_ABI,
        method="addStrategy",
        args=[strategy, int(config.debt_ratio), int(config.external_deposit_fee)],
        sender=governor,
        label=f"PoolAccountant[{pool_accountant[:10]}]",
    )
    execute_or_queue(context, call)
    return True


def deploy_and_configure_strategy(
    context: DeploymentContext, params: DeployParams, config: ConfigParams
) -> DeployResult:
    """
    Deploys the strategy behind its proxy, then brings its on-chain configuration
    up to date. Every step is skipped when the chain already reflects it.
    """
    if config.keeper is None:
        raise ValueError(f"No keeper configured for {params.alias}")

    result = deploy(context, params)
    strategy = result.address

    approve_token(context, params.alias, strategy)

    governor = to_checksum_address(context.read(params.alias, "governor"))
    add_keeper(context, params.alias, config.keeper, governor=governor)

    add_strategy(context, params.alias, strategy, config)

    if not result.newly_deployed:
        # a new proxy is verified right after its deployment
        verify_contract(context, strategy)
    return result
