import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from .base import Base


class ExperimentStatus(enum.Enum):
    DRAFT = "DRAFT"
    RUNNING = "RUNNING"
    SUSPENDED = "SUSPENDED"
    COMPLETED = "COMPLETED"


# --- Experiment Model ---
class ExperimentORM(Base):
    __tablename__ = "experiments"
    __table_args__ = (
        # At most one RUNNING experiment per (item, device)
        Index(
            "uq_running_experiment_per_item_device",
            "item_id",
            "device_id",
            unique=True,
            postgresql_where=text("status = 'RUNNING'"),
            sqlite_where=text("status = 'RUNNING'"),
        ),
    )

    experiment_id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    description = Column(Text)

    status = Column(Enum(ExperimentStatus), default=ExperimentStatus.DRAFT, nullable=False)
    suspension_reason = Column(String, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # --- Scope: the page under test and the device it is rendered for ---
    item_id = Column(String, ForeignKey("content_items.item_id"), nullable=False, index=True)
    device_id = Column(String, nullable=False, default="default")

    # Share of eligible requests admitted into the experiment, 0..100
    traffic_allocation_percent = Column(Float, nullable=False, default=100.0)

    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)

    # One Experiment has Many Variables, kept in test set order
    variables = relationship(
        "VariableORM",
        back_populates="experiment",
        order_by="VariableORM.position",
        cascade="all, delete-orphan",
    )

    exposures = relationship("ExposureORM", back_populates="experiment")


# --- Variable: one axis of variation (e.g. a rendering slot) ---
class VariableORM(Base):
    __tablename__ = "experiment_variables"

    variable_id = Column(String, primary_key=True)
    experiment_id = Column(
        String, ForeignKey("experiments.experiment_id"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    name = Column(String, nullable=False)

    experiment = relationship("ExperimentORM", back_populates="variables")
    values = relationship(
        "VariantValueORM",
        back_populates="variable",
        order_by="VariantValueORM.position",
        cascade="all, delete-orphan",
    )


class VariantValueORM(Base):
    __tablename__ = "variant_values"

    value_id = Column(String, primary_key=True)
    variable_id = Column(
        String, ForeignKey("experiment_variables.variable_id"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    name = Column(String, nullable=False)

    # Content item rendered for this value; NULL keeps the original content
    datasource_id = Column(String, nullable=True)
    weight = Column(Float, nullable=False, default=1.0)

    variable = relationship("VariableORM", back_populates="values")
