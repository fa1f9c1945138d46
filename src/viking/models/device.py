from sqlalchemy import Column, Integer, String

from ..database import Base


class Device(Base):
    """SQLAlchemy model for a customer device brought in for service."""

    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, index=True)
    serial_number = Column(String, unique=True, index=True, nullable=False)
    brand = Column(String, index=True, nullable=False)
    model = Column(String, nullable=False)


class DiagnosticPoint(Base):
    """A single diagnostic finding recorded against a work order."""

    __tablename__ = "diagnostic_points"

    id = Column(Integer, primary_key=True, index=True)
    # work orders live in another service; no foreign key
    work_order_id = Column(Integer, index=True, nullable=False)
    description = Column(String, nullable=True)
