import json

from click.testing import CliRunner

from orchestrator.safe import PendingTransaction, SafeBatch
from scripts.create_release import cli as create_release_cli
from scripts.export_safe_batch import cli as export_safe_batch_cli
from scripts.list_release import cli as list_release_cli
from tests.conftest import GOVERNOR, POOL_ACCOUNTANT

PENDING = PendingTransaction(sender=GOVERNOR, to=POOL_ACCOUNTANT, data="0x6a0a8ee1")


def write_deployment(network_dir, name, address):
    network_dir.mkdir(parents=True, exist_ok=True)
    with open(network_dir / f"{name}.json", "w") as file:
        json.dump({"address": address, "abi": []}, file)


def test_create_release_requires_version(tmp_path):
    result = CliRunner().invoke(create_release_cli, ["--releases-dir", str(tmp_path)])
    assert result.exit_code != 0
    assert "--release" in result.output


def test_create_release_rejects_invalid_version(tmp_path):
    result = CliRunner().invoke(create_release_cli, ["--release", "latest"])
    assert result.exit_code != 0
    assert "not a valid semantic version" in result.output


def test_create_and_list_release(deployments_dir, tmp_path):
    releases_dir = tmp_path / "releases"
    write_deployment(deployments_dir / "mainnet", "Yearn_vUSDC", "0xAA")
    write_deployment(deployments_dir / "optimism", "Yearn_vETH", "0xCC")

    result = CliRunner().invoke(
        create_release_cli,
        [
            "--release",
            "1.2.0",
            "--deployments-dir",
            str(deployments_dir),
            "--releases-dir",
            str(releases_dir),
        ],
    )
    assert result.exit_code == 0, result.output
    assert "mainnet release 1.2.0 is created successfully!" in result.output

    result = CliRunner().invoke(
        list_release_cli, ["--releases-dir", str(releases_dir), "--network-name", "optimism"]
    )
    assert result.exit_code == 0, result.output
    assert "Release 1.2.0" in result.output
    assert "1. Yearn_vETH 0xCC" in result.output
    assert "Yearn_vUSDC" not in result.output


def test_create_release_reports_failed_networks(deployments_dir, tmp_path):
    (deployments_dir / "mainnet").mkdir(parents=True)
    (deployments_dir / "mainnet" / "Broken.json").write_text("{")

    result = CliRunner().invoke(
        create_release_cli,
        [
            "-r",
            "1.2.0",
            "--deployments-dir",
            str(deployments_dir),
            "--releases-dir",
            str(tmp_path / "releases"),
        ],
    )
    assert result.exit_code == 1
    assert "failed network(s): mainnet" in result.output


def test_export_safe_batch(multisig_dir, tmp_path):
    batch = SafeBatch(multisig_dir / "mainnet.json")
    batch.append(PENDING)
    output = tmp_path / "batch.json"

    result = CliRunner().invoke(
        export_safe_batch_cli,
        [
            "--network-name",
            "mainnet",
            "--safe",
            GOVERNOR.lower(),
            "--chain-id",
            "1",
            "--multisig-dir",
            str(multisig_dir),
            "--output-filepath",
            str(output),
            "--clear",
        ],
    )
    assert result.exit_code == 0, result.output

    with open(output) as file:
        exported = json.load(file)
    assert exported["chainId"] == "1"
    assert exported["meta"]["createdFromSafeAddress"] == GOVERNOR
    assert [tx["data"] for tx in exported["transactions"]] == [PENDING.data]
    assert len(batch) == 0


def test_export_safe_batch_from_another_safe(multisig_dir):
    SafeBatch(multisig_dir / "mainnet.json").append(PENDING)

    result = CliRunner().invoke(
        export_safe_batch_cli,
        [
            "-n",
            "mainnet",
            "--safe",
            POOL_ACCOUNTANT,
            "--chain-id",
            "1",
            "--multisig-dir",
            str(multisig_dir),
        ],
    )
    assert result.exit_code == 1
    assert "not from the safe" in result.output
    assert len(SafeBatch(multisig_dir / "mainnet.json")) == 1
