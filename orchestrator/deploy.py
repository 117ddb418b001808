import typing
from typing import Any, List, NamedTuple, Optional, Union

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from orchestrator.abi import (
    ABI,
    InvalidArguments,
    encode_call,
    get_method_abis,
    merge_abis,
    validate_method_args,
    validate_named_args,
)
from orchestrator.backend import ContractArtifact, bytecode_hash
from orchestrator.constants import (
    DEFAULT_INITIALIZER,
    EIP1967_IMPLEMENTATION_SLOT,
    IMPLEMENTATION_SUFFIX,
    PROXY_CONTRACT,
    PROXY_SUFFIX,
)
from orchestrator.context import DeploymentContext
from orchestrator.governance import execute_as_governor
from orchestrator.layout import check_upgrade_safety
from orchestrator.records import DeploymentRecord

EMPTY_BYTES32 = b"\x00" * 32


class MissingDeployerAccount(Exception):
    """Raised when no deployer account is configured"""


class InvalidInitializer(InvalidArguments):
    """Raised when initializer arguments do not match the implementation ABI"""


class Initializer(NamedTuple):
    """
    The initializer call executed by the proxy constructor.
    `args` is either a positional sequence or a named parameter record whose
    keys must match the ABI input names in order.
    """

    args: Union[typing.Sequence[Any], typing.Mapping[str, Any]] = ()
    method_name: Optional[str] = None

    @property
    def method(self) -> str:
        return self.method_name or DEFAULT_INITIALIZER

    def resolve(self, contract_name: str, abi: ABI) -> List[Any]:
        """Validates the arguments against `abi` and returns them positionally."""
        method_abis = get_method_abis(abi, self.method)
        if not method_abis:
            raise InvalidInitializer(f"{contract_name} has no '{self.method}' method")

        try:
            if isinstance(self.args, typing.Mapping):
                if len(method_abis) != 1:
                    raise InvalidInitializer(
                        f"{contract_name}.{self.method} is overloaded; use positional arguments"
                    )
                return validate_named_args(contract_name, method_abis[0], self.args)
            return list(validate_method_args(method_abis, list(self.args)).values())
        except InvalidInitializer:
            raise
        except InvalidArguments as e:
            raise InvalidInitializer(f"{contract_name}: {e}") from e

    def encode(self, contract_name: str, abi: ABI) -> bytes:
        args = self.resolve(contract_name, abi)
        return encode_call(abi, self.method, args)


class DeployParams(NamedTuple):
    alias: str
    contract: str
    initializer: Initializer = Initializer()


class DeployResult(NamedTuple):
    record: DeploymentRecord
    newly_deployed: bool

    @property
    def address(self) -> ChecksumAddress:
        return self.record.address


def implementation_name(contract: str) -> str:
    return f"{contract}{IMPLEMENTATION_SUFFIX}"


def proxy_name(alias: str) -> str:
    return f"{alias}{PROXY_SUFFIX}"


def get_implementation(
    context: DeploymentContext, proxy_address: ChecksumAddress
) -> Optional[ChecksumAddress]:
    """Reads the implementation address from the EIP-1967 slot of a proxy."""
    storage = context.backend.get_storage(proxy_address, EIP1967_IMPLEMENTATION_SLOT)
    if bytes(storage) == EMPTY_BYTES32:
        return None
    return to_checksum_address(bytes(storage)[-20:])


def verify_contract(
    context: DeploymentContext,
    address: ChecksumAddress,
    constructor_args: typing.Sequence[Any] = (),
) -> None:
    """Publishes a contract to the explorer. Failures never abort a deployment."""
    if not context.verify:
        return
    print(f"(i) Verifying contract at {address}...")
    try:
        context.backend.verify(address, list(constructor_args))
    except Exception as e:
        print(f"(!) Verification of {address} on {context.network} failed: {e}")


def validate_upgrade(previous: DeploymentRecord, artifact: ContractArtifact) -> None:
    """Raises `UpgradeIncompatible` if `artifact` cannot replace `previous` behind a proxy."""
    if previous.bytecode and previous.bytecode == artifact.bytecode:
        return  # same code, same layout
    check_upgrade_safety(
        contract_name=artifact.name,
        original=previous.storage_layout,
        updated=artifact.storage_layout,
    )


def _is_unchanged(previous: Optional[DeploymentRecord], artifact: ContractArtifact) -> bool:
    if previous is None or not previous.bytecode:
        return False
    same_code = bytecode_hash(previous.bytecode) == artifact.bytecode_hash
    same_settings = (previous.compiler_settings or None) == (artifact.compiler_settings or None)
    return same_code and same_settings


def deploy_implementation(
    context: DeploymentContext, artifact: ContractArtifact, previous: Optional[DeploymentRecord]
) -> DeploymentRecord:
    """Deploys `artifact` as `<contract>_Implementation` unless the recorded one is identical."""
    name = implementation_name(artifact.name)
    if _is_unchanged(previous, artifact):
        print(f"reusing \"{name}\" at {previous.address}")
        return previous

    print(f"deploying \"{name}\"...")
    deployed = context.backend.deploy(artifact, [], sender=context.deployer)
    record = DeploymentRecord(
        name=name,
        address=to_checksum_address(deployed.address),
        abi=artifact.abi,
        bytecode=artifact.bytecode,
        args=[],
        tx_hash=deployed.tx_hash,
        storage_layout=artifact.storage_layout,
        compiler_settings=artifact.compiler_settings,
    )
    context.store.save(record)
    print(f"deployed \"{name}\" at {record.address} (tx: {deployed.tx_hash})")
    return record


def _deploy_proxy(
    context: DeploymentContext,
    params: DeployParams,
    artifact: ContractArtifact,
    implementation: DeploymentRecord,
) -> DeployResult:
    data = params.initializer.encode(params.contract, artifact.abi)
    constructor_args = [implementation.address, data]

    proxy_artifact = context.backend.get_artifact(PROXY_CONTRACT)
    alias_proxy = proxy_name(params.alias)
    print(f"deploying \"{alias_proxy}\" ({PROXY_CONTRACT}) for {params.contract}...")
    deployed = context.backend.deploy(proxy_artifact, constructor_args, sender=context.deployer)

    proxy_record = DeploymentRecord(
        name=alias_proxy,
        address=to_checksum_address(deployed.address),
        abi=proxy_artifact.abi,
        bytecode=proxy_artifact.bytecode,
        implementation=implementation.address,
        args=constructor_args,
        tx_hash=deployed.tx_hash,
    )
    context.store.save(proxy_record)

    alias_record = proxy_record._replace(
        name=params.alias,
        abi=merge_abis([proxy_artifact.abi, artifact.abi], skip_supports_interface=True),
    )
    context.store.save(alias_record)
    print(f"deployed \"{params.alias}\" at {alias_record.address} (tx: {deployed.tx_hash})")

    verify_contract(context, alias_record.address, constructor_args)
    return DeployResult(record=alias_record, newly_deployed=True)


def _refresh_records(
    context: DeploymentContext,
    params: DeployParams,
    proxy_record: DeploymentRecord,
    artifact: ContractArtifact,
    implementation: DeploymentRecord,
) -> DeploymentRecord:
    """Points the proxy and alias records at the latest implementation."""
    alias_record = context.store.get_or_none(params.alias)
    if proxy_record.implementation == implementation.address and alias_record is not None:
        return alias_record

    proxy_record = proxy_record._replace(implementation=implementation.address)
    context.store.save(proxy_record)

    alias_record = (alias_record or proxy_record)._replace(
        name=params.alias,
        implementation=implementation.address,
        abi=merge_abis([proxy_record.abi, artifact.abi], skip_supports_interface=True),
    )
    context.store.save(alias_record)
    return alias_record


def deploy(context: DeploymentContext, params: DeployParams) -> DeployResult:
    """
    Deploys (or upgrades) `params.alias` as an ERC-1967 proxy in front of the
    latest `params.contract` implementation.

    - a new implementation is only deployed if the code changed
    - an existing implementation must be storage compatible with the new one
    - a missing proxy is deployed and initialized in the same transaction
    - an existing proxy is upgraded by its governor, directly or via the multisig
    """
    if not context.deployer:
        raise MissingDeployerAccount(
            f"The 'deployer' account wasn't set for network '{context.network}'"
        )

    artifact = context.backend.get_artifact(params.contract)
    # fail on bad arguments before anything is sent to the chain
    params.initializer.resolve(params.contract, artifact.abi)

    previous = context.store.get_or_none(implementation_name(params.contract))
    if previous is not None:
        validate_upgrade(previous, artifact)

    implementation = deploy_implementation(context, artifact, previous)

    proxy_record = context.store.get_or_none(proxy_name(params.alias))
    if proxy_record is None:
        return _deploy_proxy(context, params, artifact, implementation)

    alias_record = _refresh_records(context, params, proxy_record, artifact, implementation)

    current_implementation = get_implementation(context, proxy_record.address)
    if current_implementation != implementation.address:
        print(
            f"upgrading \"{params.alias}\" from {current_implementation} "
            f"to {implementation.address}"
        )
        governor = context.read(params.alias, "governor")
        execute_as_governor(
            context,
            params.alias,
            "upgradeToAndCall",
            [implementation.address, b""],
            governor=to_checksum_address(governor),
        )

    return DeployResult(record=alias_record, newly_deployed=False)
