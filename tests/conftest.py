import typing
from typing import Any, Dict, List

import pytest
from eth_utils import to_checksum_address

from orchestrator.backend import ChainBackend, ContractArtifact, DeployedContract, UnknownSigner
from orchestrator.constants import EIP1967_IMPLEMENTATION_SLOT, PROXY_CONTRACT
from orchestrator.context import DeploymentContext

# Common constants
DEPLOYER = to_checksum_address("0x" + "de" * 20)
GOVERNOR = to_checksum_address("0x" + "90" * 20)
KEEPER = to_checksum_address("0x" + "ee" * 20)
POOL = to_checksum_address("0x" + "b0" * 20)
COLLATERAL_TOKEN = to_checksum_address("0x" + "c0" * 20)
POOL_ACCOUNTANT = to_checksum_address("0x" + "ac" * 20)
SWAPPER = to_checksum_address("0x" + "5a" * 20)

STRATEGY = "Yearn"
ALIAS = "Yearn_vUSDC"

EMPTY_SLOT = b"\x00" * 32

COMPILER_SETTINGS = {"version": "0.8.24", "optimizer": {"enabled": True, "runs": 200}}


def _function(name, inputs=(), outputs=(), mutability="nonpayable"):
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
    }


STRATEGY_ABI = [
    _function("initialize", [("pool_", "address"), ("swapper_", "address"), ("name_", "string")]),
    _function("pool", outputs=["address"], mutability="view"),
    _function("collateralToken", outputs=["address"], mutability="view"),
    _function("governor", outputs=["address"], mutability="view"),
    _function("keepers", outputs=["address[]"], mutability="view"),
    _function("isActive", outputs=["bool"], mutability="view"),
    _function("poolAccountant", outputs=["address"], mutability="view"),
    _function("addKeeper", [("keeperAddress_", "address")]),
    _function("approveToken", [("amount_", "uint256")]),
    _function("upgradeToAndCall", [("newImplementation", "address"), ("data", "bytes")]),
    _function("supportsInterface", [("interfaceId", "bytes4")], ["bool"], "view"),
]

PROXY_ABI = [
    {
        "type": "constructor",
        "stateMutability": "payable",
        "inputs": [
            {"name": "implementation", "type": "address"},
            {"name": "_data", "type": "bytes"},
        ],
    },
    {
        "type": "event",
        "name": "Upgraded",
        "anonymous": False,
        "inputs": [{"name": "implementation", "type": "address", "indexed": True}],
    },
    {"type": "fallback", "stateMutability": "payable"},
]

LAYOUT_TYPES = {
    "t_address": {"label": "address", "numberOfBytes": "20"},
    "t_uint256": {"label": "uint256", "numberOfBytes": "32"},
    "t_array(t_uint256)48_storage": {"label": "uint256[48]", "numberOfBytes": "1536"},
    "t_array(t_uint256)47_storage": {"label": "uint256[47]", "numberOfBytes": "1504"},
}


def storage_entry(label, slot, type_, contract="Strategy", offset=0):
    return {
        "contract": f"contracts/strategies/Strategy.sol:{contract}",
        "label": label,
        "offset": offset,
        "slot": str(slot),
        "type": type_,
    }


LAYOUT_V1 = {
    "storage": [
        storage_entry("pool", 0, "t_address"),
        storage_entry("swapper", 1, "t_address"),
        storage_entry("__gap", 2, "t_array(t_uint256)48_storage"),
    ],
    "types": LAYOUT_TYPES,
}

# appends `lastRebalance` by shrinking the gap
LAYOUT_V2 = {
    "storage": [
        storage_entry("pool", 0, "t_address"),
        storage_entry("swapper", 1, "t_address"),
        storage_entry("lastRebalance", 2, "t_uint256"),
        storage_entry("__gap", 3, "t_array(t_uint256)47_storage"),
    ],
    "types": LAYOUT_TYPES,
}

# `swapper` moved in front of `pool`
LAYOUT_REORDERED = {
    "storage": [
        storage_entry("swapper", 0, "t_address"),
        storage_entry("pool", 1, "t_address"),
        storage_entry("__gap", 2, "t_array(t_uint256)48_storage"),
    ],
    "types": LAYOUT_TYPES,
}

STRATEGY_BYTECODE_V1 = "0x6080604052348015600f57600080fd5b5001"
STRATEGY_BYTECODE_V2 = "0x6080604052348015600f57600080fd5b5002"
PROXY_BYTECODE = "0x60806040526040516104ec3803806104ec"


def strategy_artifact(bytecode=STRATEGY_BYTECODE_V1, layout=LAYOUT_V1, settings=None):
    return ContractArtifact(
        name=STRATEGY,
        abi=STRATEGY_ABI,
        bytecode=bytecode,
        storage_layout=layout,
        compiler_settings=settings or COMPILER_SETTINGS,
    )


def proxy_artifact():
    return ContractArtifact(name=PROXY_CONTRACT, abi=PROXY_ABI, bytecode=PROXY_BYTECODE)


class FakeChain(ChainBackend):
    """In-memory chain: strategies behind proxies, their pool and collateral token."""

    def __init__(self, signers: typing.Iterable[str] = (DEPLOYER,)):
        self.signers = set(signers)
        self.artifacts = {STRATEGY: strategy_artifact(), PROXY_CONTRACT: proxy_artifact()}
        self.storage: Dict[typing.Tuple[str, int], bytes] = dict()
        self.state: Dict[str, Dict[str, Any]] = dict()
        self.allowances: Dict[typing.Tuple[str, str, str], int] = dict()
        self.deployments: List[typing.Tuple[str, str, List[Any]]] = list()
        self.transactions: List[typing.Tuple[str, str, List[Any], str]] = list()
        self.failing_methods = set()
        self.verified: List[str] = list()
        self.verification_error = None
        self.governor = GOVERNOR

    def get_artifact(self, contract_name: str) -> ContractArtifact:
        return self.artifacts[contract_name]

    def deploy(self, artifact, args, sender):
        if sender not in self.signers:
            raise UnknownSigner(sender)
        address = to_checksum_address(f"0x{0xC0DE0000 + len(self.deployments) + 1:040x}")
        self.deployments.append((address, artifact.name, list(args)))
        if artifact.name == PROXY_CONTRACT:
            implementation, _data = args
            self.storage[(address, EIP1967_IMPLEMENTATION_SLOT)] = (
                b"\x00" * 12 + bytes.fromhex(implementation[2:])
            )
            self.state[address] = {
                "pool": POOL,
                "collateralToken": COLLATERAL_TOKEN,
                "governor": self.governor,
                "keepers": list(),
                "isActive": False,
                "poolAccountant": POOL_ACCOUNTANT,
            }
        tx_hash = f"0x{len(self.deployments):064x}"
        return DeployedContract(address=address, tx_hash=tx_hash)

    def get_storage(self, address, slot):
        return self.storage.get((address, slot), EMPTY_SLOT)

    def implementation(self, proxy_address) -> str:
        slot = self.get_storage(proxy_address, EIP1967_IMPLEMENTATION_SLOT)
        return to_checksum_address(slot[-20:])

    def call(self, address, abi, method, args):
        if method == "allowance":
            owner, spender = args
            return self.allowances.get((address, owner, spender), 0)
        return self.state[address][method]

    def transact(self, address, abi, method, args, sender):
        if sender not in self.signers:
            raise UnknownSigner(sender)
        if method in self.failing_methods:
            raise RuntimeError(f"execution reverted: {method}")
        self.transactions.append((address, method, list(args), sender))

        if method == "upgradeToAndCall":
            self.storage[(address, EIP1967_IMPLEMENTATION_SLOT)] = (
                b"\x00" * 12 + bytes.fromhex(args[0][2:])
            )
        elif method == "addKeeper":
            self.state[address]["keepers"].append(args[0])
        elif method == "approveToken":
            state = self.state[address]
            self.allowances[(state["collateralToken"], address, state["pool"])] = args[0]
        elif method == "addStrategy":
            self.state[args[0]]["isActive"] = True
        return f"0x{0xF000 + len(self.transactions):064x}"

    def is_signer(self, address):
        return address in self.signers

    def verify(self, address, constructor_args):
        self.verified.append(address)
        if self.verification_error:
            raise self.verification_error


# Fixtures
@pytest.fixture()
def chain():
    return FakeChain()


@pytest.fixture()
def deployments_dir(tmp_path):
    return tmp_path / "deployments"


@pytest.fixture()
def multisig_dir(tmp_path):
    return tmp_path / "multisig"


@pytest.fixture()
def context(chain, deployments_dir, multisig_dir):
    return DeploymentContext.for_directories(
        network="mainnet",
        backend=chain,
        deployer=DEPLOYER,
        deployments_dir=deployments_dir,
        multisig_dir=multisig_dir,
        verify=True,
    )


@pytest.fixture()
def governor_is_deployer(chain):
    chain.governor = DEPLOYER
    return chain
