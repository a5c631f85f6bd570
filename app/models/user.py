"""ORM model for employees (authentication, RBAC and employment record)."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from app.models.base import Base


class User(Base):
    """
    Employee account for JWT authentication and role-based access control.

    role: 'staff', 'manager', 'finance' or 'admin'
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    employee_id = Column(String(20), nullable=False, unique=True, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    department = Column(String(50), nullable=False, index=True)
    position = Column(String(50), nullable=False)
    role = Column(String(32), nullable=False, default="staff", index=True)
    phone = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    password_hash = Column(String(255), nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    advances = relationship(
        "Advance",
        back_populates="requester",
        foreign_keys="Advance.requester_id",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
