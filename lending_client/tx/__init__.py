"""Transaction pipeline: jobs, signing backends and the orchestrator."""
from .backends import DelegatedProviderBackend, StandardWalletBackend
from .models import (
    Approval,
    ContractCall,
    FailureKind,
    JobEvent,
    JobStatus,
    Step,
    StepKind,
    TransactionFailure,
    TransactionJob,
    TxReceipt,
    classify_exception,
)
from .orchestrator import TransactionOrchestrator, plan_steps

__all__ = [
    "Approval",
    "ContractCall",
    "DelegatedProviderBackend",
    "FailureKind",
    "JobEvent",
    "JobStatus",
    "StandardWalletBackend",
    "Step",
    "StepKind",
    "TransactionFailure",
    "TransactionJob",
    "TransactionOrchestrator",
    "TxReceipt",
    "classify_exception",
    "plan_steps",
]
