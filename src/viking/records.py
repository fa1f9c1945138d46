"""Plain data records returned by the stores.

Stores never hand ORM instances to callers; directories compose these
records explicitly instead of traversing lazy associations.
"""

import uuid
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class UserRecord:
    id: uuid.UUID
    name: str
    dni: int
    cuit: Optional[str]
    user_type: str
    address: str
    phone_number: str
    secondary_phone_number: Optional[str]
    email: str
    password_hash: str


@dataclass(frozen=True)
class RoleRecord:
    id: uuid.UUID
    name: str
    permission: str


@dataclass(frozen=True)
class UserRoleRecord:
    id: int
    user_id: uuid.UUID
    role_id: uuid.UUID


@dataclass(frozen=True)
class DeviceRecord:
    id: int
    serial_number: str
    brand: str
    model: str


@dataclass(frozen=True)
class DiagnosticPointRecord:
    id: int
    work_order_id: int
    description: Optional[str]
