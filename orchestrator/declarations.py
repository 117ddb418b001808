"""
Strategy declarations: YAML documents listing the strategies to deploy on a
network, in deployment order.

    deployment:
      network: mainnet
    constants:
      KEEPER: "0x..."
      VETH: "0x..."
    defaults:
      keeper: $KEEPER
    strategies:
      - alias: CompoundV3_ETH_vETH
        contract: CompoundV3
        initializer:
          args: [$VETH, $SWAPPER, "CompoundV3_ETH"]
        config:
          debt_ratio: 0

Values starting with `$` are variables: `$UPPERCASE` names a constant,
`$deployer` the deployer account and any other name the address of a
deployment already recorded on the network.
"""

import typing
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

import yaml
from eth_utils import to_checksum_address

from orchestrator.constants import STRATEGY_CONTRACTS
from orchestrator.context import DeploymentContext
from orchestrator.deploy import DeployParams, Initializer
from orchestrator.strategy import ConfigParams

VARIABLE_PREFIX = "$"
DEPLOYER_INDICATOR = "deployer"
ZERO_ADDRESS = "0x" + "0" * 40


class DeclarationError(ValueError):
    """Raised when a strategy declaration file is malformed"""


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def is_variable(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(VARIABLE_PREFIX)


def resolve_value(
    value: Any,
    constants: Dict[str, Any],
    context: DeploymentContext,
    eager: bool = False,
) -> Any:
    """
    Substitutes variables in `value`. With `eager`, deployments that do not
    exist yet resolve to the zero address so declarations can be validated
    before the run starts.
    """
    if isinstance(value, list):
        return [resolve_value(v, constants, context, eager) for v in value]
    if isinstance(value, dict):
        return OrderedDict(
            (k, resolve_value(v, constants, context, eager)) for k, v in value.items()
        )
    if not is_variable(value):
        return value

    variable = value[len(VARIABLE_PREFIX) :]
    if variable == DEPLOYER_INDICATOR:
        if context.deployer is None:
            return ZERO_ADDRESS
        return context.deployer
    if variable.isupper():
        try:
            return constants[variable]
        except KeyError:
            raise DeclarationError(f"Constant '{variable}' not found in declaration file.")

    address = context.address_of(variable)
    if address is None:
        if eager:
            return ZERO_ADDRESS
        raise DeclarationError(f"No deployment named '{variable}' on {context.network}")
    return address


class StrategyDeclaration(NamedTuple):
    alias: str
    contract: str
    initializer_args: Any
    initializer_method: Optional[str]
    config: Dict[str, Any]

    def resolve(
        self, context: DeploymentContext, constants: Dict[str, Any], eager: bool = False
    ) -> typing.Tuple[DeployParams, ConfigParams]:
        args = resolve_value(self.initializer_args, constants, context, eager)
        config = resolve_value(self.config, constants, context, eager)

        keeper = config.get("keeper")
        params = DeployParams(
            alias=self.alias,
            contract=self.contract,
            initializer=Initializer(args=args, method_name=self.initializer_method),
        )
        config_params = ConfigParams(
            keeper=to_checksum_address(keeper) if keeper else None,
            debt_ratio=int(config.get("debt_ratio", 0)),
            external_deposit_fee=int(config.get("external_deposit_fee", 0)),
        )
        return params, config_params


def _parse_strategy(entry: Any, defaults: Dict[str, Any]) -> StrategyDeclaration:
    if not isinstance(entry, dict):
        raise DeclarationError(f"Malformed strategy declaration: {entry}")
    for field in ("alias", "contract"):
        if not entry.get(field):
            raise DeclarationError(f"Strategy declaration is missing '{field}': {entry}")
    if entry["contract"] not in STRATEGY_CONTRACTS:
        raise DeclarationError(
            f"Unknown strategy contract '{entry['contract']}' for {entry['alias']}"
        )

    initializer = entry.get("initializer") or dict()
    if not isinstance(initializer, dict):
        raise DeclarationError(f"Malformed initializer for {entry['alias']}.")
    args = initializer.get("args", [])
    if not isinstance(args, (list, dict)):
        raise DeclarationError(f"Initializer args of {entry['alias']} must be a list or mapping.")

    config = dict(defaults)
    config.update(entry.get("config") or dict())
    return StrategyDeclaration(
        alias=entry["alias"],
        contract=entry["contract"],
        initializer_args=args,
        initializer_method=initializer.get("method"),
        config=config,
    )


class StrategyDeclarations:
    """The strategies declared for one network, in deployment order."""

    def __init__(self, config: Dict[str, Any], path: Optional[Path] = None):
        self.path = path
        self.config = config
        deployment = config.get("deployment") or dict()
        self.network = deployment.get("network")
        self.constants = config.get("constants") or dict()

        raw_strategies = config.get("strategies")
        if not raw_strategies:
            raise DeclarationError("Declaration file is missing the 'strategies' field.")
        defaults = config.get("defaults") or dict()
        self.strategies: List[StrategyDeclaration] = [
            _parse_strategy(entry, defaults) for entry in raw_strategies
        ]

        aliases = [s.alias for s in self.strategies]
        duplicates = sorted({a for a in aliases if aliases.count(a) > 1})
        if duplicates:
            raise DeclarationError(f"Duplicate strategy aliases: {duplicates}")

    @classmethod
    def from_yaml(cls, filepath: Path) -> "StrategyDeclarations":
        return cls(config=_load_yaml(filepath), path=filepath)

    def select(self, aliases: typing.Iterable[str]) -> List[StrategyDeclaration]:
        aliases = list(aliases)
        if not aliases:
            return list(self.strategies)
        unknown = set(aliases) - {s.alias for s in self.strategies}
        if unknown:
            raise DeclarationError(f"Unknown strategies: {sorted(unknown)}")
        return [s for s in self.strategies if s.alias in aliases]

    def validate(self, context: DeploymentContext) -> None:
        """Checks every declaration against its contract ABI before anything is deployed."""
        if self.network and context.network not in (self.network, f"{self.network}-fork"):
            raise DeclarationError(
                f"Declarations are for network '{self.network}', "
                f"connected to '{context.network}'."
            )
        for strategy in self.strategies:
            params, config = strategy.resolve(context, self.constants, eager=True)
            if config.keeper is None:
                raise DeclarationError(f"No keeper configured for {strategy.alias}")
            artifact = context.backend.get_artifact(params.contract)
            params.initializer.resolve(params.contract, artifact.abi)
