"""SQLAlchemy ORM models for locality pages and incentive programs."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


locality_incentives = Table(
    "locality_incentives",
    Base.metadata,
    Column("locality_id", Integer, ForeignKey("localities.id", ondelete="CASCADE"), primary_key=True),
    Column("incentive_id", Integer, ForeignKey("incentives.id", ondelete="CASCADE"), primary_key=True),
)


class IncentiveRow(Base):
    """A national or region-scoped incentive program."""

    __tablename__ = "incentives"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(300), nullable=False, unique=True)
    description = Column(Text, default="")
    amount = Column(Integer)
    percentage = Column(Float)
    kind = Column(String(50), nullable=False)
    provider = Column(String(300), default="")
    eligibility = Column(Text, default="")
    application_url = Column(String(500))
    is_national = Column(Boolean, nullable=False, default=False)
    region_code = Column(String(10), index=True)


class LocalityRow(Base):
    """One locality page: demographics, cost/ROI figures, and content."""

    __tablename__ = "localities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(200), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    region_code = Column(String(10), nullable=False, index=True)
    region_name = Column(String(100), nullable=False)
    county = Column(String(200), default="")
    zip_codes = Column(ARRAY(String), default=[])
    population = Column(Integer, nullable=False, default=0)
    latitude = Column(Float)
    longitude = Column(Float)

    # Cost / ROI
    electricity_rate = Column(Float, nullable=False)
    base_cost = Column(Integer, nullable=False)
    cost_multiplier = Column(Float, nullable=False, default=1.0)
    avg_install_cost = Column(Integer, nullable=False)
    energy_cost = Column(Numeric(10, 2))
    fuel_baseline_cost = Column(Numeric(10, 2))
    savings_per_charge = Column(Numeric(10, 2))
    monthly_savings = Column(Numeric(10, 2))
    annual_savings = Column(Numeric(12, 2))
    total_rebates = Column(Integer, default=0)

    # Page content
    meta_title = Column(String(300))
    meta_description = Column(String(500))
    intro = Column(Text)
    faq = Column(JSONB, default=list)
    content_source = Column(String(20), nullable=False)
    content_generated = Column(Boolean, nullable=False, default=False, index=True)
    published = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    incentives = relationship(IncentiveRow, secondary=locality_incentives, lazy="selectin")
