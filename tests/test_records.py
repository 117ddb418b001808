import json

import pytest

from orchestrator.records import DeploymentRecord, DeploymentStore
from tests.conftest import POOL, PROXY_ABI, STRATEGY_ABI, SWAPPER


def test_store_round_trip(deployments_dir):
    store = DeploymentStore(deployments_dir / "mainnet")
    record = DeploymentRecord(
        name="Yearn_vUSDC_Proxy",
        address=POOL.lower(),
        abi=PROXY_ABI,
        bytecode="0x6080",
        implementation=SWAPPER.lower(),
        args=[SWAPPER, b"\x12\x34"],
        tx_hash="0x" + "ab" * 32,
    )
    filepath = store.save(record)
    assert filepath == deployments_dir / "mainnet" / "Yearn_vUSDC_Proxy.json"

    with open(filepath) as file:
        data = json.load(file)
    assert list(data) == ["address", "abi", "transactionHash", "args", "bytecode", "implementation"]
    assert data["args"] == [SWAPPER, "0x1234"]

    loaded = store.get("Yearn_vUSDC_Proxy")
    assert loaded.address == POOL
    assert loaded.implementation == SWAPPER
    assert loaded.storage_layout is None
    assert store.names() == ["Yearn_vUSDC_Proxy"]


def test_missing_record(deployments_dir):
    store = DeploymentStore(deployments_dir / "mainnet")
    assert store.get_or_none("Yearn_vUSDC") is None
    assert store.names() == []
    with pytest.raises(ValueError, match="No deployment named 'Yearn_vUSDC'"):
        store.get("Yearn_vUSDC")


def test_context_reads_recorded_deployment(context, chain):
    context.store.save(DeploymentRecord(name="Yearn_vUSDC", address=POOL, abi=STRATEGY_ABI))
    chain.state[POOL] = {"governor": SWAPPER}
    assert context.read("Yearn_vUSDC", "governor") == SWAPPER
    assert context.address_of("Yearn_vUSDC") == POOL
    assert context.address_of("Yearn_vDAI") is None
