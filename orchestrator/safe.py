import json
import time
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from orchestrator.constants import STANDARD_JSON_FORMAT

TRANSACTION_BUILDER_VERSION = "1.0"


class PendingTransaction(NamedTuple):
    """A privileged call that only the multisig can execute."""

    sender: ChecksumAddress
    to: ChecksumAddress
    data: str
    value: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.sender, "to": self.to, "value": str(self.value), "data": self.data}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PendingTransaction":
        return cls(
            sender=to_checksum_address(data["from"]),
            to=to_checksum_address(data["to"]),
            data=data["data"],
            value=int(data.get("value", 0)),
        )


class SafeBatch:
    """
    Pending multisig transactions for one network, persisted as a JSON list so
    that a later run (or a human operator) can hand them to the Safe.
    """

    def __init__(self, filepath: Path):
        self.filepath = Path(filepath)

    def read(self) -> List[PendingTransaction]:
        if not self.filepath.exists():
            return list()
        with open(self.filepath, "r") as file:
            return [PendingTransaction.from_dict(entry) for entry in json.load(file)]

    def _write(self, transactions: List[PendingTransaction]) -> None:
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(self.filepath, "w") as file:
            json.dump([tx.to_dict() for tx in transactions], file, **STANDARD_JSON_FORMAT)

    def append(self, transaction: PendingTransaction) -> int:
        """
        Appends a transaction to the batch and returns the batch size.
        A transaction identical to a pending one is not added twice.
        """
        transactions = self.read()
        if transaction in transactions:
            return len(transactions)
        transactions.append(transaction)
        self._write(transactions)
        return len(transactions)

    def __contains__(self, transaction: PendingTransaction) -> bool:
        return transaction in self.read()

    def clear(self) -> None:
        if self.filepath.exists():
            self.filepath.unlink()

    def __len__(self) -> int:
        return len(self.read())


def transaction_builder_batch(
    transactions: List[PendingTransaction],
    chain_id: int,
    safe_address: ChecksumAddress,
    name: str = "Strategy deployment",
    created_at: Optional[int] = None,
) -> Dict[str, Any]:
    """Returns the batch in the JSON format imported by the Safe Transaction Builder."""
    senders = {tx.sender for tx in transactions}
    if senders - {safe_address}:
        raise ValueError(
            f"Batch contains transactions from {sorted(senders - {safe_address})}, "
            f"not from the safe {safe_address}"
        )

    return {
        "version": TRANSACTION_BUILDER_VERSION,
        "chainId": str(chain_id),
        "createdAt": created_at if created_at is not None else int(time.time() * 1000),
        "meta": {
            "name": name,
            "description": f"{len(transactions)} queued transaction(s)",
            "createdFromSafeAddress": safe_address,
        },
        "transactions": [
            {
                "to": tx.to,
                "value": str(tx.value),
                "data": tx.data,
                "contractMethod": None,
                "contractInputsValues": None,
            }
            for tx in transactions
        ],
    }
