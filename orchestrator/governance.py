import json
import typing
from typing import Any, List, NamedTuple, Union

import click
from eth_typing import ChecksumAddress

from orchestrator.abi import ABI, encode_call
from orchestrator.backend import UnknownSigner
from orchestrator.context import DeploymentContext
from orchestrator.records import DeploymentName
from orchestrator.safe import PendingTransaction


class GovernanceCallFailed(Exception):
    """Raised when a privileged call fails for any reason other than a missing signer"""


class PrivilegedCall(NamedTuple):
    """A call that must be sent by `sender`, usually the governor of the target."""

    target: ChecksumAddress
    abi: ABI
    method: str
    args: List[Any]
    sender: ChecksumAddress
    label: str = ""

    def describe(self) -> str:
        name = self.label or self.target
        return f"{name}.{self.method}"

    def pending_transaction(self) -> PendingTransaction:
        data = encode_call(abi=self.abi, method_name=self.method, args=self.args)
        return PendingTransaction(sender=self.sender, to=self.target, data="0x" + data.hex())


class Executed(NamedTuple):
    tx_hash: str


class Queued(NamedTuple):
    transaction: PendingTransaction


class Failed(NamedTuple):
    error: Exception


CallOutcome = Union[Executed, Queued, Failed]


def attempt_call(context: DeploymentContext, call: PrivilegedCall) -> CallOutcome:
    """
    Tries to execute `call` with a local signer. A sender we cannot sign for
    is not a failure: the call is captured for multisig execution instead.
    """
    if not context.backend.is_signer(call.sender):
        return Queued(call.pending_transaction())

    try:
        tx_hash = context.backend.transact(
            call.target, call.abi, call.method, list(call.args), sender=call.sender
        )
    except UnknownSigner:
        return Queued(call.pending_transaction())
    except Exception as error:
        return Failed(error)
    return Executed(tx_hash)


def execute_or_queue(context: DeploymentContext, call: PrivilegedCall) -> CallOutcome:
    """
    Executes `call` directly when possible, otherwise appends it to the
    pending multisig batch of the network. Only a failed execution raises.
    """
    outcome = attempt_call(context, call)

    if isinstance(outcome, Executed):
        print(f"executing {call.describe()} (tx: {outcome.tx_hash})")
    elif isinstance(outcome, Queued):
        pending = outcome.transaction
        message = {
            "from": pending.sender,
            "to": pending.to,
            "method": call.method,
            "args": [str(arg) for arg in call.args],
        }
        click.secho("Transaction:", fg="yellow", nl=False)
        click.echo(" " + json.dumps(message, indent=2))
        click.secho(
            "Note: Current wallet cannot execute transaction. "
            "It will be executed by safe later in the flow.",
            fg="yellow",
        )
        if pending in context.batch:
            print(f"(i) Transaction already pending in {context.batch.filepath}")
        else:
            batch_size = context.batch.append(pending)
            print(f"(i) {batch_size} transaction(s) pending in {context.batch.filepath}")
    else:
        raise GovernanceCallFailed(
            f"{call.describe()} from {call.sender} failed on {context.network}: {outcome.error}"
        ) from outcome.error

    return outcome


def execute_as_governor(
    context: DeploymentContext,
    name: DeploymentName,
    method: str,
    args: typing.Sequence[Any],
    governor: ChecksumAddress,
) -> CallOutcome:
    """Calls `method` on a recorded deployment on behalf of its governor."""
    record = context.store.get(name)
    call = PrivilegedCall(
        target=record.address,
        abi=record.abi,
        method=method,
        args=list(args),
        sender=governor,
        label=name,
    )
    return execute_or_queue(context, call)
