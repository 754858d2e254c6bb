from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, DateTime, Integer, Numeric, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from claimscore.database import Base


class ProcedureStat(Base):
    """Charge baseline for one procedure code, rebuilt on every ingestion run."""

    __tablename__ = "procedure_stats"

    id: Mapped[int] = mapped_column(primary_key=True)
    procedure_code: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    avg_charge: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=Decimal("0"))
    std_dev: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=Decimal("0"))
    total_claims: Mapped[int] = mapped_column(Integer, default=0)
    last_updated: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class ProviderStat(Base):
    __tablename__ = "provider_stats"
    __table_args__ = (UniqueConstraint("provider_id", "provider_type"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    provider_id: Mapped[str] = mapped_column(String(64), index=True)
    provider_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    total_claims: Mapped[int] = mapped_column(Integer, default=0)
    avg_claim_charge: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=Decimal("0"))
    last_updated: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
