"""SQLAlchemy ORM models for the bill clarifier."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Float, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Property(Base):
    """A solar installation owned by a user account."""
    __tablename__ = "properties"

    property_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    owner_id: Mapped[str] = mapped_column(String(200), index=True)
    name: Mapped[str] = mapped_column(String(200))
    distributor: Mapped[str | None] = mapped_column(String(200), nullable=True)
    system_power_kwp: Mapped[float | None] = mapped_column(Float, nullable=True)
    expected_monthly_generation_kwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    analyses: Mapped[list[BillAnalysis]] = relationship(
        back_populates="property", cascade="all, delete-orphan",
    )


class BillAnalysis(Base):
    """One submitted bill; unique per property and reference period."""
    __tablename__ = "bill_analyses"
    __table_args__ = (
        UniqueConstraint("property_id", "reference_month", "reference_year", name="uq_analysis_period"),
    )

    analysis_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    property_id: Mapped[UUID] = mapped_column(ForeignKey("properties.property_id"), index=True)
    reference_month: Mapped[int] = mapped_column(Integer)
    reference_year: Mapped[int] = mapped_column(Integer)
    mode: Mapped[str] = mapped_column(String(20), default="quick")
    status: Mapped[str] = mapped_column(String(20), default="processing")  # processing, completed, error
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Identification
    account_holder: Mapped[str | None] = mapped_column(String(300), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    distributor: Mapped[str | None] = mapped_column(String(200), nullable=True)
    consumer_class: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tariff_modality: Mapped[str | None] = mapped_column(String(100), nullable=True)
    billing_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    due_date: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Metering & solar
    meter_reading_current: Mapped[float | None] = mapped_column(Float, nullable=True)
    meter_reading_previous: Mapped[float | None] = mapped_column(Float, nullable=True)
    measured_consumption_kwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    billed_consumption_kwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    injected_energy_kwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    compensated_energy_kwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    previous_credits_kwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_credits_kwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    monitored_generation_kwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    expected_generation_kwh: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Costs
    total_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    energy_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    availability_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    public_lighting_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    icms_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    pis_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    cofins_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    pis_cofins_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    sectoral_charges: Mapped[float | None] = mapped_column(Float, nullable=True)
    fine_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    interest_amount: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Tariff & demand
    tariff_flag: Mapped[str | None] = mapped_column(String(20), nullable=True)
    tariff_flag_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    tariff_te_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    tariff_tusd_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    demand_contracted_kw: Mapped[float | None] = mapped_column(Float, nullable=True)
    demand_measured_kw: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Derived
    real_consumption_kwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    generation_efficiency: Mapped[float | None] = mapped_column(Float, nullable=True)
    minimum_possible: Mapped[float | None] = mapped_column(Float, nullable=True)
    uncompensated_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    system_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    estimated_savings: Mapped[float | None] = mapped_column(Float, nullable=True)
    extraction_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    alerts: Mapped[list | None] = mapped_column(JSON, nullable=True)

    # Narrative (full mode)
    ai_analysis: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_explanations: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    ai_recommendations: Mapped[list | None] = mapped_column(JSON, nullable=True)
    bill_score: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    property: Mapped[Property] = relationship(back_populates="analyses")


class BillRawData(Base):
    """Full normalized extraction kept alongside the flattened analysis row."""
    __tablename__ = "bill_raw_data"

    raw_data_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    analysis_id: Mapped[UUID] = mapped_column(
        ForeignKey("bill_analyses.analysis_id", ondelete="CASCADE"), index=True,
    )
    raw_json: Mapped[dict] = mapped_column(JSON)
    ocr_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    extraction_model: Mapped[str] = mapped_column(String(100))
    extraction_version: Mapped[str] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
