"""Directories orchestrating lookups and writes over the stores.

Every search endpoint takes a discriminator ``query`` selecting the lookup
variant plus the parameter that variant needs. Writes touching more than one
table run inside a single :func:`~viking.database.transaction`.
"""

import logging
import uuid
from dataclasses import asdict, dataclass
from enum import Enum
from typing import List, Optional, Type, TypeVar, Union

from prometheus_client import Counter
from sqlalchemy.orm import Session

from .config import settings
from .database import transaction
from .errors import Forbidden, InvalidArgument, NotFound, StorageError, Unauthorized
from .records import RoleRecord, UserRecord
from .schemas import (
    DeviceCreate,
    DeviceView,
    DiagnosticPointCreate,
    DiagnosticPointView,
    RoleCreate,
    RoleView,
    UserCreate,
    UserUpdate,
    UserView,
)
from .security import Caller, PasswordEncoder
from .stores import (
    DeviceStore,
    DiagnosticPointStore,
    RoleStore,
    UserRoleLinkStore,
    UserStore,
)


logger = logging.getLogger(__name__)

USER_CREATED_COUNTER = Counter("users_created_total", "Total users created")
USER_DELETED_COUNTER = Counter("users_deleted_total", "Total users deleted")
DEVICE_CREATED_COUNTER = Counter("devices_created_total", "Total devices created")

Q = TypeVar("Q", bound=Enum)


class UserQuery(str, Enum):
    ALL = "all"
    BY_ID = "by-id"
    BY_DNI = "by-dni"
    BY_EMAIL = "by-email"
    BY_CUIT = "by-cuit"
    BY_ROLE = "by-role"


class DeviceQuery(str, Enum):
    ALL = "all"
    BY_ID = "by-id"
    BY_SERIAL_NUMBER = "by-serial-number"
    BY_BRAND = "by-brand"


class RoleQuery(str, Enum):
    ALL = "all"
    BY_ID = "by-id"


@dataclass(frozen=True)
class UserSearch:
    query: Optional[str]
    id: Optional[uuid.UUID] = None
    dni: Optional[int] = None
    email: Optional[str] = None
    cuit: Optional[str] = None
    role_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class DeviceSearch:
    query: Optional[str]
    id: Optional[int] = None
    serial_number: Optional[str] = None
    brand: Optional[str] = None


@dataclass(frozen=True)
class RoleSearch:
    query: Optional[str]
    id: Optional[uuid.UUID] = None


def parse_query(raw: Optional[str], query_type: Type[Q]) -> Q:
    """Resolve a discriminator string, case-insensitively."""
    if raw is None:
        raise InvalidArgument("Query parameter is required")
    try:
        return query_type(raw.lower())
    except ValueError:
        raise InvalidArgument(f"Invalid query parameter: {raw}") from None


def _require(value, label: str, query: Enum):
    if value is None:
        raise InvalidArgument(f"{label} is required for '{query.value}' query")
    return value


class UserDirectory:
    """Search, create, update and delete users together with their role link."""

    def __init__(self, session: Session, encoder: Optional[PasswordEncoder] = None):
        self._session = session
        self._users = UserStore(session)
        self._roles = RoleStore(session)
        self._links = UserRoleLinkStore(session)
        self._encoder = encoder or PasswordEncoder()

    # -- projection -------------------------------------------------------

    def _view(self, user: UserRecord, role_id: Optional[uuid.UUID]) -> UserView:
        return UserView(
            id=user.id,
            name=user.name,
            dni=user.dni,
            cuit=user.cuit,
            user_type=user.user_type,
            address=user.address,
            phone_number=user.phone_number,
            secondary_phone_number=user.secondary_phone_number,
            email=user.email,
            role_id=role_id,
        )

    def _project(self, user: UserRecord) -> UserView:
        link = self._links.find_by_user(user.id)
        return self._view(user, link.role_id if link else None)

    def _project_many(self, users: List[UserRecord]) -> List[UserView]:
        role_ids = self._links.role_ids_for(u.id for u in users)
        return [self._view(u, role_ids.get(u.id)) for u in users]

    # -- search -----------------------------------------------------------

    def search(self, criteria: UserSearch) -> Union[UserView, List[UserView]]:
        query = parse_query(criteria.query, UserQuery)
        logger.info("user search query=%s", query.value)

        if query is UserQuery.ALL:
            return self._project_many(self._users.list_all())
        if query is UserQuery.BY_ROLE:
            role_id = _require(criteria.role_id, "Role ID", query)
            return self._project_many(self.users_with_role(role_id))

        if query is UserQuery.BY_ID:
            value = _require(criteria.id, "ID", query)
            label, user = "ID", self._users.get(value)
        elif query is UserQuery.BY_DNI:
            value = _require(criteria.dni, "DNI", query)
            label, user = "DNI", self._users.find_by_dni(value)
        elif query is UserQuery.BY_EMAIL:
            value = _require(criteria.email, "Email", query)
            label, user = "email", self._users.find_by_email(value)
        else:
            value = _require(criteria.cuit, "CUIT", query)
            label, user = "CUIT", self._users.find_by_cuit(value)

        if user is None:
            raise NotFound(f"User not found with {label}: {value}")
        return self._project(user)

    def users_with_role(self, role_id: uuid.UUID) -> List[UserRecord]:
        """Users linked to ``role_id``; a link to a missing user is an error."""
        users = []
        for link in self._links.find_by_role(role_id):
            user = self._users.get(link.user_id)
            if user is None:
                raise NotFound(f"User not found with ID: {link.user_id}")
            users.append(user)
        return users

    # -- writes -----------------------------------------------------------

    def _resolve_role(self, role_id: uuid.UUID) -> RoleRecord:
        role = self._roles.get(role_id)
        if role is None:
            raise InvalidArgument(f"Role not found with ID: {role_id}")
        return role

    def _check_unique(
        self,
        dni: int,
        email: str,
        cuit: Optional[str],
        exclude: Optional[uuid.UUID] = None,
    ) -> None:
        checks = [
            ("DNI", dni, self._users.find_by_dni),
            ("email", email, self._users.find_by_email),
        ]
        if cuit:
            checks.append(("CUIT", cuit, self._users.find_by_cuit))
        for label, value, finder in checks:
            other = finder(value)
            if other is not None and other.id != exclude:
                raise InvalidArgument(f"{label} already registered: {value}")

    def create(self, payload: UserCreate, caller: Optional[Caller] = None) -> UserView:
        """Persist a new user and link it to an existing role.

        Anonymous registration may pick any role except the administrative
        one; granting that requires an admin ``caller``.
        """
        logger.info("create user dni=%s role=%s", payload.dni, payload.role_id)
        with transaction(self._session):
            role = self._resolve_role(payload.role_id)
            if role.permission == settings.admin_permission and not (caller and caller.is_admin):
                raise Forbidden("Only administrators can grant the administrator role")
            self._check_unique(payload.dni, payload.email, payload.cuit)
            user = self._users.add(
                name=payload.name,
                dni=payload.dni,
                cuit=payload.cuit,
                user_type=payload.user_type.value,
                address=payload.address,
                phone_number=payload.phone_number,
                secondary_phone_number=payload.secondary_phone_number,
                email=payload.email,
                password_hash=self._encoder.encode(payload.password),
            )
            self._links.add(user.id, role.id)
        USER_CREATED_COUNTER.inc()
        logger.info("created user id=%s role=%s", user.id, role.name)
        return self._view(user, role.id)

    def update(self, caller: Caller, user_id: uuid.UUID, payload: UserUpdate) -> UserView:
        """Replace a user's mutable fields and optionally rewrite its role link."""
        if payload.id != user_id:
            raise InvalidArgument(
                f"Path ID {user_id} does not match payload ID {payload.id}"
            )
        if caller.user_id != user_id and not caller.is_admin:
            raise Forbidden("Not allowed to update another user")

        logger.info("update user id=%s", user_id)
        with transaction(self._session):
            if self._users.get(user_id) is None:
                raise NotFound(f"User not found with ID: {user_id}")
            self._check_unique(payload.dni, payload.email, payload.cuit, exclude=user_id)

            fields = dict(
                name=payload.name,
                dni=payload.dni,
                cuit=payload.cuit,
                user_type=payload.user_type.value,
                address=payload.address,
                phone_number=payload.phone_number,
                secondary_phone_number=payload.secondary_phone_number,
                email=payload.email,
            )
            if payload.password:
                fields["password_hash"] = self._encoder.encode(payload.password)
            user = self._users.update(user_id, **fields)

            link = self._links.find_by_user(user_id)
            if payload.role_id is not None:
                role = self._resolve_role(payload.role_id)
                changes_role = link is None or link.role_id != role.id
                if changes_role and not caller.is_admin:
                    raise Forbidden("Only administrators can change roles")
                if link is None:
                    link = self._links.add(user_id, role.id)
                elif changes_role:
                    link = self._links.set_role(link.id, role.id)
        return self._view(user, link.role_id if link else None)

    def delete(self, caller: Caller, user_id: uuid.UUID) -> bool:
        """Remove a user and its role link.

        Returns ``False`` when the database fails the deletion.
        """
        if not caller.is_admin:
            raise Forbidden("Only administrators can delete users")
        if self._users.get(user_id) is None:
            raise NotFound(f"User not found with ID: {user_id}")
        try:
            with transaction(self._session):
                self._links.delete_for_user(user_id)
                self._users.delete(user_id)
        except StorageError as exc:
            logger.warning("could not delete user id=%s: %s", user_id, exc.message)
            return False
        USER_DELETED_COUNTER.inc()
        logger.info("deleted user id=%s", user_id)
        return True

    # -- credentials ------------------------------------------------------

    def authenticate(self, email: str, password: str) -> UserRecord:
        user = self._users.find_by_email(email)
        if user is None or not self._encoder.matches(password, user.password_hash):
            raise Unauthorized("Invalid credentials")
        return user

    def permission_of(self, user_id: uuid.UUID) -> Optional[str]:
        link = self._links.find_by_user(user_id)
        if link is None:
            return None
        role = self._roles.get(link.role_id)
        return role.permission if role else None


class RoleDirectory:
    """Lookup and admin-only creation of roles."""

    def __init__(self, session: Session):
        self._session = session
        self._roles = RoleStore(session)

    def search(self, criteria: RoleSearch) -> Union[RoleView, List[RoleView]]:
        """Return every role, or the one selected by id."""
        query = parse_query(criteria.query, RoleQuery)
        if query is RoleQuery.ALL:
            return [RoleView(**asdict(r)) for r in self._roles.list_all()]
        role_id = _require(criteria.id, "ID", query)
        role = self._roles.get(role_id)
        if role is None:
            raise NotFound(f"Role not found with ID: {role_id}")
        return RoleView(**asdict(role))

    def create(self, caller: Caller, payload: RoleCreate) -> RoleView:
        """Create a role; the caller must hold the admin permission."""
        if not caller.is_admin:
            raise Forbidden("Only administrators can create roles")
        with transaction(self._session):
            if self._roles.find_by_name(payload.name) is not None:
                raise InvalidArgument(f"Role already exists: {payload.name}")
            role = self._roles.add(payload.name, payload.permission)
        logger.info("created role id=%s name=%s", role.id, role.name)
        return RoleView(**asdict(role))


class DeviceDirectory:
    """Search and registration of devices."""

    def __init__(self, session: Session):
        self._session = session
        self._devices = DeviceStore(session)

    def search(self, criteria: DeviceSearch) -> Union[DeviceView, List[DeviceView]]:
        """Look devices up by the variant named in ``criteria.query``."""
        query = parse_query(criteria.query, DeviceQuery)
        logger.info("device search query=%s", query.value)

        if query is DeviceQuery.ALL:
            return [DeviceView(**asdict(d)) for d in self._devices.list_all()]
        if query is DeviceQuery.BY_BRAND:
            brand = _require(criteria.brand, "Brand", query)
            return [DeviceView(**asdict(d)) for d in self._devices.find_by_brand(brand)]

        if query is DeviceQuery.BY_ID:
            value = _require(criteria.id, "ID", query)
            label, device = "ID", self._devices.get(value)
        else:
            value = _require(criteria.serial_number, "Serial number", query)
            label, device = "serial number", self._devices.find_by_serial_number(value)
        if device is None:
            raise NotFound(f"Device not found with {label}: {value}")
        return DeviceView(**asdict(device))

    def create(self, payload: DeviceCreate) -> DeviceView:
        """Register a device with a unique serial number."""
        if not (payload.serial_number and payload.brand and payload.model):
            raise InvalidArgument("Serial number, brand, and model are required")
        with transaction(self._session):
            if self._devices.find_by_serial_number(payload.serial_number) is not None:
                raise InvalidArgument(
                    f"Serial number already registered: {payload.serial_number}"
                )
            device = self._devices.add(payload.serial_number, payload.brand, payload.model)
        DEVICE_CREATED_COUNTER.inc()
        logger.info("created device id=%s serial=%s", device.id, device.serial_number)
        return DeviceView(**asdict(device))


class DiagnosticPointDirectory:
    """Diagnostic points recorded against work orders."""

    def __init__(self, session: Session):
        self._session = session
        self._points = DiagnosticPointStore(session)

    def list_for_work_order(self, work_order_id: Optional[int]) -> List[DiagnosticPointView]:
        """Points for one work order, in insertion order."""
        if work_order_id is None:
            raise InvalidArgument("Work order ID is required")
        return [
            DiagnosticPointView(**asdict(p))
            for p in self._points.find_by_work_order(work_order_id)
        ]

    def create(self, payload: DiagnosticPointCreate) -> DiagnosticPointView:
        """Record a point; the work order id is mandatory."""
        if payload.work_order_id is None:
            raise InvalidArgument("Work order ID is required")
        with transaction(self._session):
            point = self._points.add(payload.work_order_id, payload.description)
        return DiagnosticPointView(**asdict(point))
