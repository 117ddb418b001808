import json
import os
import typing
from pathlib import Path
from typing import Any, Dict, List, Optional

from ape import Contract, accounts, chain, config, networks, project
from ape.api import AccountAPI
from ape.contracts import ContractContainer
from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from orchestrator.abi import ABI, get_method_abis, validate_method_args
from orchestrator.backend import ChainBackend, ContractArtifact, DeployedContract, UnknownSigner
from orchestrator.constants import (
    DEPLOYMENTS_DIR,
    MULTISIG_DIR,
    OZ_DEPENDENCY_NAME,
    OZ_DEPENDENCY_VERSION,
    PROXY_CONTRACT,
    STORAGE_LAYOUTS_DIR,
)
from orchestrator.context import DeploymentContext, is_local


def is_local_network() -> bool:
    return is_local(networks.provider.network.name)


def check_etherscan_plugin() -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the appropriate API key environment variable is set.
    """
    if is_local_network():
        # unnecessary for local deployment
        return
    ecosystem_name = networks.provider.network.ecosystem.name
    explorer_envvar = API_KEY_ENV_KEY_MAP.get(ecosystem_name)
    api_key = os.environ.get(explorer_envvar) if explorer_envvar else None
    if not api_key:
        raise ValueError(f"{explorer_envvar or 'Explorer API key'} is not set.")


def check_plugins() -> None:
    print("Checking plugins...")
    check_etherscan_plugin()


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    if contract == PROXY_CONTRACT:
        oz_dependency = project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
        return getattr(oz_dependency, contract)
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def _get_abi(container: ContractContainer) -> ABI:
    contract_abi = list()
    for entry in container.contract_type.abi:
        contract_abi.append(entry.model_dump(mode="json", by_alias=True, exclude_none=True))
    return contract_abi


def load_storage_layout(contract: str, directory: Path = STORAGE_LAYOUTS_DIR) -> Optional[Dict]:
    """
    Returns the solc storage layout exported for `contract`, e.g. with
    `forge inspect <contract> storage-layout --json > storage_layouts/<contract>.json`.
    """
    filepath = Path(directory) / f"{contract}.json"
    if not filepath.exists():
        return None
    with open(filepath, "r") as file:
        return json.load(file)


def _compiler_settings() -> Dict[str, Any]:
    return config.get_config("solidity").model_dump(mode="json", by_alias=True)


class ApeBackend(ChainBackend):
    """Chain backend on top of the connected ape provider and a deployer account."""

    def __init__(
        self, account: Optional[AccountAPI], impersonate: bool = False, autosign: bool = False
    ):
        self.account = account
        self.impersonate = impersonate
        self._containers: Dict[str, ContractContainer] = dict()
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
            self.account.set_autosign(autosign)

    def _is_account(self, address: ChecksumAddress) -> bool:
        return self.account is not None and to_checksum_address(address) == self.account.address

    def _signer(self, address: ChecksumAddress) -> AccountAPI:
        if self._is_account(address):
            return self.account
        if self.impersonate:
            return accounts.test_accounts.impersonate_account(address)
        raise UnknownSigner(address)

    def is_signer(self, address: ChecksumAddress) -> bool:
        return self.impersonate or self._is_account(address)

    def get_artifact(self, contract_name: str) -> ContractArtifact:
        container = self._containers.get(contract_name)
        if container is None:
            container = get_contract_container(contract_name)
            self._containers[contract_name] = container
        return ContractArtifact(
            name=contract_name,
            abi=_get_abi(container),
            bytecode=container.contract_type.deployment_bytecode.bytecode,
            storage_layout=load_storage_layout(contract_name),
            compiler_settings=_compiler_settings(),
        )

    def deploy(
        self, artifact: ContractArtifact, args: List[Any], sender: ChecksumAddress
    ) -> DeployedContract:
        container = self._containers.get(artifact.name) or get_contract_container(artifact.name)
        instance = self._signer(sender).deploy(container, *args, publish=False)
        return DeployedContract(
            address=to_checksum_address(instance.address),
            tx_hash=str(instance.receipt.txn_hash),
        )

    def get_storage(self, address: ChecksumAddress, slot: int) -> bytes:
        return bytes(chain.provider.get_storage(address, slot))

    def call(self, address: ChecksumAddress, abi: ABI, method: str, args: List[Any]) -> Any:
        instance = Contract(address, abi=abi)
        return getattr(instance, method)(*args)

    def transact(
        self,
        address: ChecksumAddress,
        abi: ABI,
        method: str,
        args: List[Any],
        sender: ChecksumAddress,
    ) -> str:
        signer = self._signer(sender)
        named_args = validate_method_args(method_abis=get_method_abis(abi, method), args=args)
        base_message = f"\nTransacting [{address[:10]}].{method} from {signer.address}"
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            print(f"{base_message} with arguments:\n\t{pretty_args}")
        else:
            print(f"{base_message} with no arguments")

        instance = Contract(address, abi=abi)
        receipt = getattr(instance, method)(*args, sender=signer)
        return str(receipt.txn_hash)

    def verify(self, address: ChecksumAddress, constructor_args: typing.Sequence[Any]) -> None:
        explorer = networks.provider.network.explorer
        if explorer is None:
            raise ValueError(f"No explorer configured for {networks.provider.network.name}")
        explorer.publish_contract(address)


def get_deployment_context(
    account: Optional[AccountAPI],
    verify: bool,
    autosign: bool = False,
    deployments_dir: Path = DEPLOYMENTS_DIR,
    multisig_dir: Path = MULTISIG_DIR,
) -> DeploymentContext:
    """Builds the deployment context of the connected network."""
    local = is_local_network()
    backend = ApeBackend(account=account, impersonate=local, autosign=autosign)
    network_name = networks.provider.network.name
    context = DeploymentContext.for_directories(
        network=network_name,
        backend=backend,
        deployer=account.address if account else None,
        deployments_dir=deployments_dir,
        multisig_dir=multisig_dir,
        verify=verify,
        local=local,
    )
    print(
        f"Account: {context.deployer}",
        f"Deployments: {context.store.directory}",
        f"Multisig batch: {context.batch.filepath}",
        f"Verify: {context.verify}",
        f"Ecosystem: {networks.provider.network.ecosystem.name}",
        f"Network: {network_name}",
        f"Chain ID: {networks.provider.network.chain_id}",
        sep="\n",
    )
    return context
