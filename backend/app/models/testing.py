from sqlalchemy import Column, String, DateTime, Integer, BigInteger, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid
from app.models.requirement import ApprovableMixin


class ExecutionStatus(str, enum.Enum):
    """Progress of a test run or of one test case inside a run"""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    APPROVED = "approved"  # test runs only


class ExecutionResult(str, enum.Enum):
    PENDING = "pending"
    PASS = "pass"
    FAIL = "fail"


class TestCase(ApprovableMixin, Base):
    """Procedure verifying one or more requirements (TC-n)"""
    __tablename__ = "test_cases"
    __test__ = False  # keep pytest from collecting the model

    steps = relationship(
        "TestStep",
        back_populates="test_case",
        cascade="all, delete-orphan",
        order_by="TestStep.step_number",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<TestCase {self.id}>"


class TestStep(Base):
    """Numbered action/expected-result pair of a test case"""
    __tablename__ = "test_steps"
    __test__ = False

    id = Column(Integer, primary_key=True, autoincrement=True)
    test_case_id = Column(String(50), ForeignKey("test_cases.id", ondelete="CASCADE"), nullable=False, index=True)
    step_number = Column(Integer, nullable=False)
    action = Column(Text, nullable=False)
    expected_result = Column(Text, nullable=False)

    test_case = relationship("TestCase", back_populates="steps")

    def __repr__(self):
        return f"<TestStep {self.test_case_id}#{self.step_number}>"


class TestRun(Base):
    """Execution campaign over a set of approved test cases (TR-n)"""
    __tablename__ = "test_runs"
    __test__ = False

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default=ExecutionStatus.NOT_STARTED.value, nullable=False, index=True)
    overall_result = Column(String(20), default=ExecutionResult.PENDING.value, nullable=False)

    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    approved_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)

    creator = relationship("User", foreign_keys=[created_by], lazy="selectin")
    approver = relationship("User", foreign_keys=[approved_by], lazy="selectin")
    run_cases = relationship(
        "TestRunCase",
        back_populates="test_run",
        cascade="all, delete-orphan",
        order_by="TestRunCase.test_case_id",
    )

    @property
    def created_by_name(self):
        return self.creator.full_name if self.creator else None

    @property
    def approved_by_name(self):
        return self.approver.full_name if self.approver else None

    def __repr__(self):
        return f"<TestRun {self.id} {self.status}>"


class TestRunCase(Base):
    """One test case's execution inside a test run"""
    __tablename__ = "test_run_cases"
    __test__ = False
    __table_args__ = (UniqueConstraint("test_run_id", "test_case_id", name="uq_test_run_cases_run_case"),)

    id = Column(GUID, primary_key=True, default=generate_uuid)
    test_run_id = Column(String(50), ForeignKey("test_runs.id", ondelete="CASCADE"), nullable=False, index=True)
    test_case_id = Column(String(50), ForeignKey("test_cases.id"), nullable=False, index=True)
    status = Column(String(20), default=ExecutionStatus.NOT_STARTED.value, nullable=False)
    result = Column(String(20), default=ExecutionResult.PENDING.value, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    executed_by = Column(GUID, ForeignKey("users.id"), nullable=True)

    test_run = relationship("TestRun", back_populates="run_cases", lazy="selectin")
    test_case = relationship("TestCase", lazy="selectin")
    executor = relationship("User", foreign_keys=[executed_by], lazy="selectin")
    step_results = relationship(
        "TestStepResult",
        back_populates="run_case",
        cascade="all, delete-orphan",
        order_by="TestStepResult.step_number",
    )

    @property
    def executed_by_name(self):
        return self.executor.full_name if self.executor else None

    @property
    def test_case_title(self):
        return self.test_case.title if self.test_case else None

    @property
    def test_case_description(self):
        return self.test_case.description if self.test_case else None

    def __repr__(self):
        return f"<TestRunCase {self.test_run_id}/{self.test_case_id} {self.status}>"


class TestStepResult(Base):
    """Recorded outcome of one step of a test run case"""
    __tablename__ = "test_step_results"
    __test__ = False
    __table_args__ = (UniqueConstraint("test_run_case_id", "step_number", name="uq_step_results_case_number"),)

    id = Column(GUID, primary_key=True, default=generate_uuid)
    test_run_case_id = Column(GUID, ForeignKey("test_run_cases.id", ondelete="CASCADE"), nullable=False, index=True)
    step_number = Column(Integer, nullable=False)
    expected_result = Column(Text, nullable=True)
    actual_result = Column(Text, nullable=False)
    status = Column(String(20), nullable=False)  # pass / fail
    evidence_file_id = Column(GUID, ForeignKey("evidence_files.id"), nullable=True)
    executed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    executed_by = Column(GUID, ForeignKey("users.id"), nullable=True)

    run_case = relationship("TestRunCase", back_populates="step_results")
    executor = relationship("User", foreign_keys=[executed_by], lazy="selectin")

    @property
    def executed_by_name(self):
        return self.executor.full_name if self.executor else None

    def __repr__(self):
        return f"<TestStepResult {self.test_run_case_id}#{self.step_number} {self.status}>"


class TestResult(Base):
    """Immutable record of a test case outcome, created when a run is approved (TRES-n)"""
    __tablename__ = "test_results"
    __test__ = False

    id = Column(String(50), primary_key=True)
    test_run_id = Column(String(50), ForeignKey("test_runs.id"), nullable=False, index=True)
    test_case_id = Column(String(50), ForeignKey("test_cases.id"), nullable=False, index=True)
    result = Column(String(20), nullable=False)
    executed_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    executed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    test_run = relationship("TestRun", lazy="selectin")
    executor = relationship("User", foreign_keys=[executed_by], lazy="selectin")

    @property
    def test_run_name(self):
        return self.test_run.name if self.test_run else None

    def __repr__(self):
        return f"<TestResult {self.id} {self.result}>"


class EvidenceFile(Base):
    """File attached to a step result as proof of execution"""
    __tablename__ = "evidence_files"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    original_name = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False)
    file_size = Column(BigInteger, nullable=False)
    mime_type = Column(String(255), nullable=True)
    checksum = Column(String(64), nullable=False)
    uploaded_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    uploader = relationship("User", foreign_keys=[uploaded_by], lazy="selectin")

    @property
    def file_name(self):
        return self.original_name

    @property
    def uploaded_by_name(self):
        return self.uploader.full_name if self.uploader else None

    def __repr__(self):
        return f"<EvidenceFile {self.original_name}>"
