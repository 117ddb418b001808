import typing
from pathlib import Path
from typing import Any, Optional

from eth_typing import ChecksumAddress

from orchestrator.backend import ChainBackend
from orchestrator.constants import DEPLOYMENTS_DIR, FORK_SUFFIX, LOCAL_NETWORKS, MULTISIG_DIR
from orchestrator.records import DeploymentName, DeploymentStore
from orchestrator.safe import SafeBatch


def is_local(network: str) -> bool:
    """Returns True for development networks and forks of live networks."""
    return network in LOCAL_NETWORKS or network.endswith(FORK_SUFFIX)


class DeploymentContext:
    """
    Everything a deployment run needs: the network it targets, the chain
    backend, the deployer account and where records and pending multisig
    transactions are persisted.
    """

    def __init__(
        self,
        network: str,
        backend: ChainBackend,
        deployer: Optional[ChecksumAddress],
        store: Optional[DeploymentStore] = None,
        batch: Optional[SafeBatch] = None,
        verify: bool = True,
        local: Optional[bool] = None,
    ):
        self.network = network
        self.backend = backend
        self.deployer = deployer
        self.store = store or DeploymentStore(DEPLOYMENTS_DIR / network)
        self.batch = batch or SafeBatch(MULTISIG_DIR / f"{network}.json")
        self.local = is_local(network) if local is None else local
        self.verify = verify and not self.local

    @classmethod
    def for_directories(
        cls,
        network: str,
        backend: ChainBackend,
        deployer: Optional[ChecksumAddress],
        deployments_dir: Path,
        multisig_dir: Path,
        **kwargs,
    ) -> "DeploymentContext":
        return cls(
            network=network,
            backend=backend,
            deployer=deployer,
            store=DeploymentStore(Path(deployments_dir) / network),
            batch=SafeBatch(Path(multisig_dir) / f"{network}.json"),
            **kwargs,
        )

    def read(self, name: DeploymentName, method: str, *args) -> Any:
        """Calls a view method on a recorded deployment."""
        record = self.store.get(name)
        return self.backend.call(record.address, record.abi, method, list(args))

    def address_of(self, name: DeploymentName) -> typing.Optional[ChecksumAddress]:
        record = self.store.get_or_none(name)
        return record.address if record else None
