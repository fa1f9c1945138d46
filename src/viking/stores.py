"""Table-level stores returning plain records.

Lookups return ``None`` when nothing matches; the stores never raise for a
missing row. Writes flush but do not commit: the calling directory owns the
transaction.
"""

import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from .models.device import Device, DiagnosticPoint
from .models.user import Role, User, UserRole
from .records import (
    DeviceRecord,
    DiagnosticPointRecord,
    RoleRecord,
    UserRecord,
    UserRoleRecord,
)


def _user_record(row: User) -> UserRecord:
    return UserRecord(
        id=row.id,
        name=row.name,
        dni=row.dni,
        cuit=row.cuit,
        user_type=row.user_type,
        address=row.address,
        phone_number=row.phone_number,
        secondary_phone_number=row.secondary_phone_number,
        email=row.email,
        password_hash=row.password_hash,
    )


def _role_record(row: Role) -> RoleRecord:
    return RoleRecord(id=row.id, name=row.name, permission=row.permission)


def _link_record(row: UserRole) -> UserRoleRecord:
    return UserRoleRecord(id=row.id, user_id=row.user_id, role_id=row.role_id)


def _device_record(row: Device) -> DeviceRecord:
    return DeviceRecord(
        id=row.id, serial_number=row.serial_number, brand=row.brand, model=row.model
    )


def _point_record(row: DiagnosticPoint) -> DiagnosticPointRecord:
    return DiagnosticPointRecord(
        id=row.id, work_order_id=row.work_order_id, description=row.description
    )


class UserStore:
    """Persisted users."""

    def __init__(self, session: Session):
        self._session = session

    def _first(self, *criteria) -> Optional[UserRecord]:
        row = self._session.query(User).filter(*criteria).first()
        return _user_record(row) if row else None

    def list_all(self) -> List[UserRecord]:
        return [_user_record(row) for row in self._session.query(User).all()]

    def get(self, user_id: uuid.UUID) -> Optional[UserRecord]:
        return self._first(User.id == user_id)

    def find_by_dni(self, dni: int) -> Optional[UserRecord]:
        return self._first(User.dni == dni)

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        return self._first(User.email == email)

    def find_by_cuit(self, cuit: str) -> Optional[UserRecord]:
        return self._first(User.cuit == cuit)

    def add(self, **fields) -> UserRecord:
        row = User(**fields)
        self._session.add(row)
        self._session.flush()
        return _user_record(row)

    def update(self, user_id: uuid.UUID, **fields) -> Optional[UserRecord]:
        """Overwrite the given columns; returns ``None`` if the user is gone."""
        row = self._session.get(User, user_id)
        if row is None:
            return None
        for name, value in fields.items():
            setattr(row, name, value)
        self._session.flush()
        return _user_record(row)

    def delete(self, user_id: uuid.UUID) -> bool:
        deleted = self._session.query(User).filter(User.id == user_id).delete()
        self._session.flush()
        return deleted > 0


class RoleStore:
    """Persisted roles. Role ids never change once created."""

    def __init__(self, session: Session):
        self._session = session

    def list_all(self) -> List[RoleRecord]:
        return [_role_record(row) for row in self._session.query(Role).all()]

    def get(self, role_id: uuid.UUID) -> Optional[RoleRecord]:
        row = self._session.get(Role, role_id)
        return _role_record(row) if row else None

    def find_by_name(self, name: str) -> Optional[RoleRecord]:
        row = self._session.query(Role).filter(Role.name == name).first()
        return _role_record(row) if row else None

    def add(self, name: str, permission: str) -> RoleRecord:
        row = Role(name=name, permission=permission)
        self._session.add(row)
        self._session.flush()
        return _role_record(row)


class UserRoleLinkStore:
    """The ``user_roles`` join table.

    The schema allows a single row per user, so :meth:`find_by_user` is the
    canonical way to resolve a user's role.
    """

    def __init__(self, session: Session):
        self._session = session

    def find_by_user(self, user_id: uuid.UUID) -> Optional[UserRoleRecord]:
        row = (
            self._session.query(UserRole)
            .filter(UserRole.user_id == user_id)
            .order_by(UserRole.id)
            .first()
        )
        return _link_record(row) if row else None

    def find_by_role(self, role_id: uuid.UUID) -> List[UserRoleRecord]:
        rows = (
            self._session.query(UserRole)
            .filter(UserRole.role_id == role_id)
            .order_by(UserRole.id)
            .all()
        )
        return [_link_record(row) for row in rows]

    def role_ids_for(self, user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, uuid.UUID]:
        """Map each linked user id to its role id in a single query."""
        user_ids = list(user_ids)
        if not user_ids:
            return {}
        rows = (
            self._session.query(UserRole.user_id, UserRole.role_id)
            .filter(UserRole.user_id.in_(user_ids))
            .order_by(UserRole.id.desc())
            .all()
        )
        # descending order so the first row per user wins the assignment
        return {user_id: role_id for user_id, role_id in rows}

    def add(self, user_id: uuid.UUID, role_id: uuid.UUID) -> UserRoleRecord:
        row = UserRole(user_id=user_id, role_id=role_id)
        self._session.add(row)
        self._session.flush()
        return _link_record(row)

    def set_role(self, link_id: int, role_id: uuid.UUID) -> UserRoleRecord:
        row = self._session.get(UserRole, link_id)
        row.role_id = role_id
        self._session.flush()
        return _link_record(row)

    def delete_for_user(self, user_id: uuid.UUID) -> int:
        deleted = self._session.query(UserRole).filter(UserRole.user_id == user_id).delete()
        self._session.flush()
        return deleted


class DeviceStore:
    """Persisted devices."""

    def __init__(self, session: Session):
        self._session = session

    def list_all(self) -> List[DeviceRecord]:
        return [_device_record(row) for row in self._session.query(Device).all()]

    def get(self, device_id: int) -> Optional[DeviceRecord]:
        row = self._session.get(Device, device_id)
        return _device_record(row) if row else None

    def find_by_serial_number(self, serial_number: str) -> Optional[DeviceRecord]:
        row = (
            self._session.query(Device)
            .filter(Device.serial_number == serial_number)
            .first()
        )
        return _device_record(row) if row else None

    def find_by_brand(self, brand: str) -> List[DeviceRecord]:
        rows = self._session.query(Device).filter(Device.brand == brand).all()
        return [_device_record(row) for row in rows]

    def add(self, serial_number: str, brand: str, model: str) -> DeviceRecord:
        row = Device(serial_number=serial_number, brand=brand, model=model)
        self._session.add(row)
        self._session.flush()
        return _device_record(row)


class DiagnosticPointStore:
    """Diagnostic points, addressed through their work order id."""

    def __init__(self, session: Session):
        self._session = session

    def find_by_work_order(self, work_order_id: int) -> List[DiagnosticPointRecord]:
        rows = (
            self._session.query(DiagnosticPoint)
            .filter(DiagnosticPoint.work_order_id == work_order_id)
            .order_by(DiagnosticPoint.id)
            .all()
        )
        return [_point_record(row) for row in rows]

    def add(self, work_order_id: int, description: Optional[str] = None) -> DiagnosticPointRecord:
        row = DiagnosticPoint(work_order_id=work_order_id, description=description)
        self._session.add(row)
        self._session.flush()
        return _point_record(row)
