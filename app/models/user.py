"""
User accounts as supplied by the identity provider.
The role is the coarse-grained capability claim; appraisal roles are
resolved per appraisal from the directory, not from this column.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from app.core.config import settings
from app.database import Base


class UserRole(str, enum.Enum):
    """
    Platform roles.

    - SUPER_ADMIN: Platform-wide access
    - HR_ADMIN / HR_MANAGER / HR_STAFF: HR override on appraisals
    - MANAGER: Line manager
    - EMPLOYEE: Self-service access
    """
    SUPER_ADMIN = "SUPER_ADMIN"
    HR_ADMIN = "HR_ADMIN"
    HR_MANAGER = "HR_MANAGER"
    HR_STAFF = "HR_STAFF"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)

    role = Column(Enum(UserRole), default=UserRole.EMPLOYEE, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee_profile = relationship("Employee", back_populates="user", uselist=False)
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    @property
    def is_hr(self) -> bool:
        """Holds the HR override capability."""
        role = self.role.value if hasattr(self.role, "value") else self.role
        return role in settings.hr_roles
