"""Transaction job model, lifecycle events and the failure taxonomy."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..chains.evm.abi import encode_call
from ..errors import LendingClientError
from ..models import Token

if TYPE_CHECKING:
    from ..interfaces.signing import SigningBackend


@dataclass(frozen=True)
class ContractCall:
    """A state-changing contract call, e.g. ``approve(address,uint256)``."""

    to: str
    signature: str
    args: tuple[Any, ...] = ()
    value: int = 0

    @property
    def method(self) -> str:
        return self.signature.split("(", 1)[0]

    def encode(self) -> str:
        return encode_call(self.signature, self.args)


class StepKind(str, Enum):
    APPROVE = "approve"
    ACT = "act"


@dataclass(frozen=True)
class Step:
    kind: StepKind
    call: ContractCall
    label: str = ""


@dataclass(frozen=True)
class Approval:
    """Allowance the ACT step needs before it can pull ``token`` from the user."""

    token: Token
    spender: str
    amount: int

    def to_call(self) -> ContractCall:
        return ContractCall(
            to=self.token.address,
            signature="approve(address,uint256)",
            args=(self.spender, self.amount),
        )


@dataclass(frozen=True)
class TxReceipt:
    tx_hash: str
    success: bool
    block_number: int | None = None
    gas_used: int | None = None

    @classmethod
    def from_rpc(cls, tx_hash: str, raw: dict[str, Any]) -> "TxReceipt":
        """Build from a JSON-RPC receipt (hex strings) or a web3 AttributeDict."""
        return cls(
            tx_hash=tx_hash,
            success=_as_int(raw.get("status")) == 1,
            block_number=_as_int(raw.get("blockNumber")),
            gas_used=_as_int(raw.get("gasUsed")),
        )


def _as_int(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


# ---------------------------------------------------------------------------
# Failure taxonomy
# ---------------------------------------------------------------------------


class FailureKind(str, Enum):
    USER_REJECTED = "user_rejected"
    INSUFFICIENT_ALLOWANCE = "insufficient_allowance"
    REVERTED = "reverted"
    CONFIRMATION_TIMEOUT = "confirmation_timeout"
    NETWORK_SWITCH_FAILED = "network_switch_failed"
    UNKNOWN = "unknown"


_MESSAGES = {
    FailureKind.USER_REJECTED: "Transaction was rejected in the wallet",
    FailureKind.INSUFFICIENT_ALLOWANCE: (
        "Token allowance is too low for this action; approve the token and retry"
    ),
    FailureKind.REVERTED: "Transaction reverted",
    FailureKind.CONFIRMATION_TIMEOUT: (
        "No confirmation received in time; check the explorer before retrying"
    ),
    FailureKind.NETWORK_SWITCH_FAILED: "Could not switch the wallet to the protocol network",
    FailureKind.UNKNOWN: "Unexpected error",
}

# EIP-1193 "user rejected request"
USER_REJECTED_CODE = 4001


class TransactionFailure(LendingClientError):
    """Terminal backend error of a transaction job."""

    def __init__(self, kind: FailureKind, reason: str = "", tx_hash: str | None = None) -> None:
        self.kind = kind
        self.reason = reason
        self.tx_hash = tx_hash
        super().__init__(self.message)

    @property
    def message(self) -> str:
        base = _MESSAGES[self.kind]
        return f"{base}: {self.reason}" if self.reason else base


def _error_code_and_text(exc: BaseException) -> tuple[int | None, str]:
    code = getattr(exc, "code", None)
    text = str(exc)
    if exc.args and isinstance(exc.args[0], dict):
        payload = exc.args[0]
        code = payload.get("code", code)
        text = str(payload.get("message", text))
    return (code if isinstance(code, int) else None), text


def classify_exception(exc: BaseException) -> TransactionFailure:
    """Map a backend/library exception onto the failure taxonomy."""
    if isinstance(exc, TransactionFailure):
        return exc
    if isinstance(exc, asyncio.TimeoutError):
        return TransactionFailure(FailureKind.CONFIRMATION_TIMEOUT)

    code, text = _error_code_and_text(exc)
    lowered = text.lower()
    if code == USER_REJECTED_CODE or "user rejected" in lowered or "user denied" in lowered:
        return TransactionFailure(FailureKind.USER_REJECTED)
    if "allowance" in lowered:
        return TransactionFailure(FailureKind.INSUFFICIENT_ALLOWANCE, text)
    if "revert" in lowered:
        return TransactionFailure(FailureKind.REVERTED, text)
    return TransactionFailure(FailureKind.UNKNOWN, text or type(exc).__name__)


# ---------------------------------------------------------------------------
# Jobs and events
# ---------------------------------------------------------------------------


class JobStatus(str, Enum):
    IDLE = "idle"
    APPROVING = "approving"
    AWAITING_APPROVAL_RECEIPT = "awaiting_approval_receipt"
    ACTING = "acting"
    AWAITING_ACTION_RECEIPT = "awaiting_action_receipt"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


@dataclass(frozen=True)
class JobEvent:
    label: str
    status: JobStatus
    step_index: int = 0
    tx_hash: str | None = None
    failure: TransactionFailure | None = None
    message: str = ""

    @property
    def terminal(self) -> bool:
        return self.status.terminal


@dataclass(eq=False)
class TransactionJob:
    """One in-flight mutating user action.

    Owned by a single flow; eligible for garbage collection once terminal.
    """

    steps: tuple[Step, ...]
    backend: "SigningBackend"
    label: str = ""
    status: JobStatus = JobStatus.IDLE
    current_step_index: int = 0
    tx_hashes: list[str] = field(default_factory=list)
    _announced: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        kinds = tuple(step.kind for step in self.steps)
        if kinds not in ((StepKind.ACT,), (StepKind.APPROVE, StepKind.ACT)):
            raise ValueError("A job is either [ACT] or [APPROVE, ACT]")

    @property
    def current_step(self) -> Step:
        return self.steps[self.current_step_index]

    @property
    def announced(self) -> bool:
        return self._announced

    def announce(self) -> bool:
        """Claim the job's single terminal announcement.

        Returns True exactly once; every later call returns False.
        """
        if self._announced:
            return False
        self._announced = True
        return True
