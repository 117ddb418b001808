import typing
from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import keccak, to_bytes

from orchestrator.abi import ABI


class UnknownSigner(Exception):
    """Raised when a transaction needs a signature from an account we do not control"""

    def __init__(self, address: ChecksumAddress):
        self.address = address
        super().__init__(f"No signer available for {address}")


def bytecode_hash(bytecode: str) -> str:
    return "0x" + keccak(to_bytes(hexstr=bytecode)).hex()


class ContractArtifact(NamedTuple):
    """Compiled contract data needed to deploy and later upgrade a contract."""

    name: str
    abi: ABI
    bytecode: str
    storage_layout: Optional[Dict[str, Any]] = None
    compiler_settings: Optional[Dict[str, Any]] = None

    @property
    def bytecode_hash(self) -> str:
        return bytecode_hash(self.bytecode)


class DeployedContract(NamedTuple):
    address: ChecksumAddress
    tx_hash: Optional[str] = None


class ChainBackend(ABC):
    """
    Narrow request/response interface to a chain.
    Every method is a blocking round-trip to the underlying provider.
    """

    @abstractmethod
    def get_artifact(self, contract_name: str) -> ContractArtifact:
        raise NotImplementedError

    @abstractmethod
    def deploy(
        self, artifact: ContractArtifact, args: List[Any], sender: ChecksumAddress
    ) -> DeployedContract:
        raise NotImplementedError

    @abstractmethod
    def get_storage(self, address: ChecksumAddress, slot: int) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def call(self, address: ChecksumAddress, abi: ABI, method: str, args: List[Any]) -> Any:
        """Performs a read-only call."""
        raise NotImplementedError

    @abstractmethod
    def transact(
        self,
        address: ChecksumAddress,
        abi: ABI,
        method: str,
        args: List[Any],
        sender: ChecksumAddress,
    ) -> str:
        """
        Sends a transaction and returns its hash.
        Raises `UnknownSigner` when `sender` cannot be signed for.
        """
        raise NotImplementedError

    @abstractmethod
    def is_signer(self, address: ChecksumAddress) -> bool:
        """Returns True if transactions from `address` can be signed locally."""
        raise NotImplementedError

    @abstractmethod
    def verify(self, address: ChecksumAddress, constructor_args: typing.Sequence[Any]) -> None:
        """Publishes the source of the contract at `address` to a block explorer."""
        raise NotImplementedError
