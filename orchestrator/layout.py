"""
Storage layout compatibility checks for proxied implementations.

Layouts use the solc `storageLayout` output format (the same document
hardhat-deploy keeps in deployment files):

    {
        "storage": [{"label": "pool", "slot": "0", "offset": 0, "type": "t_address"}, ...],
        "types": {"t_address": {"label": "address", "numberOfBytes": "20"}, ...}
    }

An upgrade is safe when every variable of the original layout keeps its
position, name and type in the new layout. New variables may only be
appended, or carved out of the front of a storage gap (`__gap`) whose end
stays where it was.
"""

import typing
from typing import Any, Dict, List, NamedTuple, Optional

SLOT_SIZE = 32
GAP_PREFIX = "__gap"


class UpgradeIncompatible(Exception):
    """Raised when a new implementation cannot safely replace the current one"""

    def __init__(self, contract_name: str, problems: List[str]):
        self.contract_name = contract_name
        self.problems = problems
        details = "\n\t".join(problems)
        super().__init__(
            f"New implementation of {contract_name} is not upgrade safe:\n\t{details}"
        )


class StorageVariable(NamedTuple):
    label: str
    slot: int
    offset: int
    type_label: str
    size: int
    contract: str = ""
    type_id: str = ""

    @property
    def start(self) -> int:
        """Absolute byte position of the variable in storage."""
        return self.slot * SLOT_SIZE + self.offset

    @property
    def end(self) -> int:
        return self.start + self.size

    @property
    def is_gap(self) -> bool:
        return self.label.startswith(GAP_PREFIX)

    @property
    def key(self) -> typing.Tuple[str, str]:
        # gaps of different base contracts share a label
        return self.contract, self.label

    def describe(self) -> str:
        return f"'{self.label}' ({self.type_label}) at slot {self.slot}, offset {self.offset}"


def _parse_variable(entry: Dict[str, Any], types: Dict[str, Any]) -> StorageVariable:
    type_info = types.get(entry["type"], {})
    return StorageVariable(
        label=entry["label"],
        slot=int(entry["slot"]),
        offset=int(entry.get("offset", 0)),
        type_label=type_info.get("label", entry["type"]),
        size=int(type_info.get("numberOfBytes", SLOT_SIZE)),
        contract=entry.get("contract", ""),
        type_id=entry["type"],
    )


def parse_layout(layout: Dict[str, Any]) -> List[StorageVariable]:
    """Returns the storage variables of a solc storage layout ordered by position."""
    types = layout.get("types") or dict()
    variables = [_parse_variable(entry, types) for entry in layout.get("storage", [])]
    return sorted(variables, key=lambda v: v.start)


def _check_gap(
    original: StorageVariable,
    updated: List[StorageVariable],
    updated_gap: Optional[StorageVariable],
) -> List[str]:
    if updated_gap is not None:
        if updated_gap.end != original.end:
            return [
                f"Storage gap {original.describe()} must end at byte {original.end}; "
                f"new gap ends at byte {updated_gap.end}"
            ]
        if updated_gap.start < original.start:
            return [f"Storage gap {original.describe()} was enlarged"]
        return list()

    # gap removed; whatever took its place must fit inside it
    problems = list()
    for variable in updated:
        if original.start <= variable.start < original.end and variable.end > original.end:
            problems.append(
                f"Variable {variable.describe()} overflows the removed storage gap "
                f"{original.describe()}"
            )
    return problems


def _same_members(
    original_type: str,
    updated_type: str,
    original_types: Dict[str, Any],
    updated_types: Dict[str, Any],
) -> bool:
    """Compares struct members, recursively, member by member."""
    original_info = original_types.get(original_type) or dict()
    updated_info = updated_types.get(updated_type) or dict()
    if original_info.get("label", original_type) != updated_info.get("label", updated_type):
        return False
    if original_info.get("numberOfBytes") != updated_info.get("numberOfBytes"):
        return False

    original_members = original_info.get("members")
    updated_members = updated_info.get("members")
    if not original_members or not updated_members:
        return True
    if len(original_members) != len(updated_members):
        return False
    for old, new in zip(original_members, updated_members):
        old_position = (old["label"], int(old["slot"]), int(old.get("offset", 0)))
        new_position = (new["label"], int(new["slot"]), int(new.get("offset", 0)))
        if old_position != new_position:
            return False
        if not _same_members(old["type"], new["type"], original_types, updated_types):
            return False
    return True


def compare_layouts(original: Dict[str, Any], updated: Dict[str, Any]) -> List[str]:
    """Returns a description of every incompatibility between two storage layouts."""
    original_types = original.get("types") or dict()
    updated_types = updated.get("types") or dict()
    original_variables = parse_layout(original)
    updated_variables = parse_layout(updated)
    updated_by_key = {v.key: v for v in updated_variables}
    updated_by_start = {v.start: v for v in updated_variables}

    problems = list()
    for variable in original_variables:
        match = updated_by_key.get(variable.key)

        if variable.is_gap:
            problems.extend(_check_gap(variable, updated_variables, match))
            continue

        if match is None:
            replacement = updated_by_start.get(variable.start)
            if replacement is not None and replacement.type_label == variable.type_label:
                problems.append(
                    f"Renamed {variable.describe()} to '{replacement.label}'"
                )
            else:
                problems.append(f"Deleted {variable.describe()}")
            continue

        if match.type_label != variable.type_label or match.size != variable.size:
            problems.append(
                f"Changed type of '{variable.label}' from {variable.type_label} "
                f"({variable.size} bytes) to {match.type_label} ({match.size} bytes)"
            )
        elif not _same_members(variable.type_id, match.type_id, original_types, updated_types):
            problems.append(f"Changed members of '{variable.label}' ({variable.type_label})")
        if match.start != variable.start:
            problems.append(
                f"Moved '{variable.label}' from slot {variable.slot}, offset {variable.offset} "
                f"to slot {match.slot}, offset {match.offset}"
            )
    return problems


def check_upgrade_safety(
    contract_name: str,
    original: typing.Optional[Dict[str, Any]],
    updated: typing.Optional[Dict[str, Any]],
) -> None:
    """Raises `UpgradeIncompatible` unless `updated` can replace `original` behind a proxy."""
    if original is None or updated is None:
        which = "previous" if original is None else "new"
        raise UpgradeIncompatible(
            contract_name, [f"Storage layout of the {which} implementation is unavailable"]
        )

    problems = compare_layouts(original=original, updated=updated)
    if problems:
        raise UpgradeIncompatible(contract_name, problems)
