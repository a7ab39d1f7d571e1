"""
Employee directory records.

Backs the local directory adapter. supervisor_id and reviewer_id point at
other employee records; resolving them to a login account takes a second
lookup through user_id.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, unique=True)
    employee_number = Column(String, nullable=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, nullable=True, index=True)
    position = Column(String, nullable=True)
    department = Column(String, nullable=True)

    # Hierarchy
    supervisor_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    reviewer_id = Column(Integer, ForeignKey("employees.id"), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="employee_profile")

    def __repr__(self):
        return f"<Employee {self.id}: {self.full_name}>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
