"""
Account Model
Directory of users who submit, approve and pay claims.
Source: https://docs.sqlalchemy.org/en/20/orm/quickstart.html
"""

from sqlalchemy import Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.enums import AccountStatus, UserRole
from src.models.base import Base, TimeStampedModel, UUIDModel, enum_values


class User(Base, UUIDModel, TimeStampedModel):
    """
    User account.

    Role and status are always present; department is optional.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    employee_id: Mapped[str | None] = mapped_column(String(50), index=True)
    department: Mapped[str | None] = mapped_column(String(100), index=True)

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False, values_callable=enum_values, length=20),
        default=UserRole.EMPLOYEE,
        nullable=False,
        index=True,
    )
    status: Mapped[AccountStatus] = mapped_column(
        Enum(AccountStatus, native_enum=False, values_callable=enum_values, length=20),
        default=AccountStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<User {self.name} ({self.role.value})>"
