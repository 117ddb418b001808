import json
import typing
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from orchestrator.abi import ABI
from orchestrator.constants import STANDARD_JSON_FORMAT

DeploymentName = str


class DeploymentRecord(NamedTuple):
    """Represents a single named contract instance deployed on one network."""

    name: DeploymentName
    address: ChecksumAddress
    abi: ABI
    bytecode: Optional[str] = None
    implementation: Optional[ChecksumAddress] = None
    args: Optional[List[Any]] = None
    tx_hash: Optional[str] = None
    storage_layout: Optional[Dict[str, Any]] = None
    compiler_settings: Optional[Dict[str, Any]] = None


# record field -> deployment file key, in file order
_FILE_KEYS = {
    "address": "address",
    "abi": "abi",
    "tx_hash": "transactionHash",
    "args": "args",
    "bytecode": "bytecode",
    "implementation": "implementation",
    "compiler_settings": "compilerSettings",
    "storage_layout": "storageLayout",
}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def record_to_json(record: DeploymentRecord) -> Dict[str, Any]:
    data = dict()
    for field, key in _FILE_KEYS.items():
        value = getattr(record, field)
        if value is not None:
            data[key] = _jsonable(value)
    return data


def record_from_json(name: DeploymentName, data: Dict[str, Any]) -> DeploymentRecord:
    fields = {field: data.get(key) for field, key in _FILE_KEYS.items()}
    fields["address"] = to_checksum_address(data["address"])
    if fields["implementation"]:
        fields["implementation"] = to_checksum_address(fields["implementation"])
    return DeploymentRecord(name=name, **fields)


class DeploymentStore:
    """
    Per-network deployment records, one JSON document per deployment name:
    `<directory>/<name>.json`.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def filepath(self, name: DeploymentName) -> Path:
        return self.directory / f"{name}.json"

    def get_or_none(self, name: DeploymentName) -> Optional[DeploymentRecord]:
        filepath = self.filepath(name)
        if not filepath.exists():
            return None
        return record_from_json(name=name, data=_load_json(filepath))

    def get(self, name: DeploymentName) -> DeploymentRecord:
        record = self.get_or_none(name)
        if record is None:
            raise ValueError(f"No deployment named '{name}' in {self.directory}")
        return record

    def save(self, record: DeploymentRecord) -> Path:
        """Writes (or overwrites) the deployment file of `record`."""
        self.directory.mkdir(parents=True, exist_ok=True)
        filepath = self.filepath(record.name)
        with open(filepath, "w") as file:
            json.dump(record_to_json(record), file, **STANDARD_JSON_FORMAT)
        return filepath

    def names(self) -> typing.List[DeploymentName]:
        if not self.directory.exists():
            return list()
        return sorted(p.name[: -len(".json")] for p in self.directory.glob("*.json"))
