from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey
from sqlalchemy.orm import declared_attr, relationship
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID


class ItemStatus(str, enum.Enum):
    """Approval state shared by requirements, risks and test cases"""
    DRAFT = "draft"
    APPROVED = "approved"


class ApprovableMixin:
    """
    Columns and user relationships shared by every approvable, soft-deletable item.

    Items are keyed by a human readable id (UR-1, SR-4, RISK-2, TC-7).
    """

    id = Column(String(50), primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default=ItemStatus.DRAFT.value, nullable=False, index=True)
    revision = Column(Integer, default=0, nullable=False)

    approval_notes = Column(Text, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_modified = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True, index=True)

    @declared_attr
    def created_by(cls):
        return Column(GUID, ForeignKey("users.id"), nullable=True)

    @declared_attr
    def modified_by(cls):
        return Column(GUID, ForeignKey("users.id"), nullable=True)

    @declared_attr
    def approved_by(cls):
        return Column(GUID, ForeignKey("users.id"), nullable=True)

    # Eagerly loaded so display names are available without lazy IO
    @declared_attr
    def creator(cls):
        return relationship("User", foreign_keys=f"{cls.__name__}.created_by", lazy="selectin")

    @declared_attr
    def modifier(cls):
        return relationship("User", foreign_keys=f"{cls.__name__}.modified_by", lazy="selectin")

    @declared_attr
    def approver(cls):
        return relationship("User", foreign_keys=f"{cls.__name__}.approved_by", lazy="selectin")

    @property
    def created_by_name(self):
        return self.creator.full_name if self.creator else None

    @property
    def modified_by_name(self):
        return self.modifier.full_name if self.modifier else None

    @property
    def approved_by_name(self):
        return self.approver.full_name if self.approver else None

    @property
    def is_approved(self) -> bool:
        return self.status == ItemStatus.APPROVED.value

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class UserRequirement(ApprovableMixin, Base):
    """What a user needs from the product (UR-n)"""
    __tablename__ = "user_requirements"

    def __repr__(self):
        return f"<UserRequirement {self.id}>"


class SystemRequirement(ApprovableMixin, Base):
    """What the system must do to satisfy user requirements (SR-n)"""
    __tablename__ = "system_requirements"

    def __repr__(self):
        return f"<SystemRequirement {self.id}>"
