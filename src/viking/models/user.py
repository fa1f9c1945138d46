import uuid

from sqlalchemy import Column, ForeignKey, Integer, String, Uuid

from ..database import Base


class User(Base):
    """SQLAlchemy model for customers and staff members."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    dni = Column(Integer, unique=True, index=True, nullable=False)
    cuit = Column(String, unique=True, index=True, nullable=True)
    user_type = Column(String, nullable=False)
    address = Column(String, nullable=False)
    phone_number = Column(String, nullable=False)
    secondary_phone_number = Column(String, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)


class Role(Base):
    """A named role carrying a single permission label."""

    __tablename__ = "roles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, unique=True, nullable=False)
    permission = Column(String, nullable=False)


class UserRole(Base):
    """Join row linking a user to its role. One row per user."""

    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), unique=True, nullable=False)
    role_id = Column(Uuid, ForeignKey("roles.id"), index=True, nullable=False)
