# Re-export all models for convenient imports
from app.models.user import User, EmailVerificationToken, TokenBlacklist
from app.models.requirement import ItemStatus, UserRequirement, SystemRequirement
from app.models.risk import RiskRecord
from app.models.testing import (
    ExecutionStatus,
    ExecutionResult,
    TestCase,
    TestStep,
    TestRun,
    TestRunCase,
    TestStepResult,
    TestResult,
    EvidenceFile,
)
from app.models.trace import Trace, TraceType
from app.models.audit_event import AuditEvent
from app.models.id_sequence import IdSequence

__all__ = [
    # Users
    "User",
    "EmailVerificationToken",
    "TokenBlacklist",
    # Requirements
    "ItemStatus",
    "UserRequirement",
    "SystemRequirement",
    "RiskRecord",
    # Testing
    "ExecutionStatus",
    "ExecutionResult",
    "TestCase",
    "TestStep",
    "TestRun",
    "TestRunCase",
    "TestStepResult",
    "TestResult",
    "EvidenceFile",
    # Traceability
    "Trace",
    "TraceType",
    # Audit
    "AuditEvent",
    "IdSequence",
]
