from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, String, Date, DateTime, Integer, Numeric, func
from sqlalchemy.orm import Mapped, mapped_column

from claimscore.database import Base


class Claim(Base):
    __tablename__ = "claims"

    id: Mapped[int] = mapped_column(primary_key=True)
    claim_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    patient_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    date_admitted: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_discharged: Mapped[date | None] = mapped_column(Date, nullable=True)
    claim_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    diagnosis: Mapped[str | None] = mapped_column(String(200), nullable=True)
    treatment: Mapped[str | None] = mapped_column(String(200), nullable=True)
    procedure_code: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    provider_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    provider_type: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    claim_charge: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    fraud_type: Mapped[str | None] = mapped_column(String(100), nullable=True)  # upstream label, never scored
    fraud_score: Mapped[int] = mapped_column(Integer, default=0, index=True)
    fraud_category: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)  # "Low" | "Medium" | "High"
    fraud_reasons: Mapped[list] = mapped_column(JSON, default=list)
    batch_id: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
