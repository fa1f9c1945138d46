"""Request and response schemas exchanged over the HTTP API.

Attribute names are snake_case in Python and camelCase on the wire.
"""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class UserType(str, Enum):
    INDIVIDUAL = "individual"
    BUSINESS = "business"


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


class UserCreate(CamelModel):
    """Request body for registering a new customer or staff member."""

    name: str = Field(..., min_length=1)
    dni: int = Field(..., gt=0, description="National identity number")
    cuit: Optional[str] = Field(None, description="Tax id, businesses only")
    user_type: UserType
    address: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)
    secondary_phone_number: str
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    role_id: uuid.UUID

    _normalize_cuit = field_validator("cuit")(_blank_to_none)


class UserUpdate(CamelModel):
    """Full replacement of a user's mutable fields.

    ``password`` and ``role_id`` are optional: the credential is rotated only
    when a non-empty password is sent, and the role link is touched only when
    a role id is sent.
    """

    id: Optional[uuid.UUID] = None
    name: str = Field(..., min_length=1)
    dni: int = Field(..., gt=0)
    cuit: Optional[str] = None
    user_type: UserType
    address: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)
    secondary_phone_number: Optional[str] = None
    email: str = Field(..., min_length=3)
    password: Optional[str] = None
    role_id: Optional[uuid.UUID] = None

    _normalize_cuit = field_validator("cuit")(_blank_to_none)


class UserView(CamelModel):
    """External representation of a user, with its linked role id."""

    id: uuid.UUID
    name: str
    dni: int
    cuit: Optional[str] = None
    user_type: UserType
    address: str
    phone_number: str
    secondary_phone_number: Optional[str] = None
    email: str
    role_id: Optional[uuid.UUID] = None


class RoleCreate(CamelModel):
    name: str = Field(..., min_length=1)
    permission: str = Field(..., min_length=1)


class RoleView(CamelModel):
    id: uuid.UUID
    name: str
    permission: str


class DeviceCreate(CamelModel):
    """Request body for a device; completeness is checked by the directory."""

    serial_number: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None


class DeviceView(CamelModel):
    id: int
    serial_number: str
    brand: str
    model: str


class DiagnosticPointCreate(CamelModel):
    work_order_id: Optional[int] = None
    description: Optional[str] = None


class DiagnosticPointView(CamelModel):
    id: int
    work_order_id: int
    description: Optional[str] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class TokenResponse(CamelModel):
    """JWT access and refresh tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class MessageResponse(CamelModel):
    message: str
    id: Optional[uuid.UUID] = None
