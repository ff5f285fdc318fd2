"""SQLAlchemy async database models for the construction directory.

Mirrors the hosted PostgreSQL schema the importer writes to. Every table has
a surrogate ``id``; tables that are upserted also carry a unique constraint on
their conflict key.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ProjectInformationModel(Base):
    """Construction permit (primary permits table)."""

    __tablename__ = "project_information"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_no: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    parcel_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    consultant_english: Mapped[str | None] = mapped_column(Text)
    contractor_english: Mapped[str | None] = mapped_column(Text)
    consultant_license_no: Mapped[int | None] = mapped_column(BigInteger, index=True)
    contractor_license_no: Mapped[int | None] = mapped_column(BigInteger, index=True)
    project_status_english: Mapped[str | None] = mapped_column(Text)

    project_creation_date: Mapped[date | None] = mapped_column(Date)
    project_completion_date: Mapped[date | None] = mapped_column(Date)
    permit_date: Mapped[date | None] = mapped_column(Date)
    work_start_date: Mapped[date | None] = mapped_column(Date)
    expected_completion_date: Mapped[date | None] = mapped_column(Date)

    related_entity_name_en: Mapped[str | None] = mapped_column(Text)
    applicanttype: Mapped[str | None] = mapped_column(Text)


class LandRegistryModel(Base):
    """Land parcel record; feeds the ``areas`` directory."""

    __tablename__ = "land_registry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int | None] = mapped_column(BigInteger, unique=True)
    parcel_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    project_id: Mapped[int | None] = mapped_column(BigInteger)
    area_id: Mapped[int | None] = mapped_column(BigInteger)
    zone_id: Mapped[int | None] = mapped_column(BigInteger)
    area_name_en: Mapped[str | None] = mapped_column(Text)
    land_number: Mapped[int | None] = mapped_column(BigInteger)
    land_sub_number: Mapped[int | None] = mapped_column(BigInteger)
    actual_area: Mapped[float | None] = mapped_column(Float)
    property_type_en: Mapped[str | None] = mapped_column(Text)
    property_sub_type_en: Mapped[str | None] = mapped_column(Text)
    land_type_en: Mapped[str | None] = mapped_column(Text)
    is_free_hold: Mapped[bool | None] = mapped_column(Boolean)
    is_registered: Mapped[bool | None] = mapped_column(Boolean)
    munc_zip_code: Mapped[int | None] = mapped_column(BigInteger, index=True)


class BuildingModel(Base):
    __tablename__ = "buildings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int | None] = mapped_column(BigInteger, unique=True)
    parcel_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    project_id: Mapped[int | None] = mapped_column(BigInteger)
    area_name_en: Mapped[str | None] = mapped_column(Text)
    land_number: Mapped[int | None] = mapped_column(BigInteger)
    building_number: Mapped[str | None] = mapped_column(Text)
    floors: Mapped[float | None] = mapped_column(Float)
    rooms: Mapped[float | None] = mapped_column(Float)
    rooms_en: Mapped[str | None] = mapped_column(Text)
    car_parks: Mapped[float | None] = mapped_column(Float)
    built_up_area: Mapped[float | None] = mapped_column(Float)
    actual_area: Mapped[float | None] = mapped_column(Float)
    common_area: Mapped[float | None] = mapped_column(Float)
    shops: Mapped[float | None] = mapped_column(Float)
    flats: Mapped[float | None] = mapped_column(Float)
    offices: Mapped[float | None] = mapped_column(Float)
    elevators: Mapped[float | None] = mapped_column(Float)
    swimming_pools: Mapped[float | None] = mapped_column(Float)
    property_type_en: Mapped[str | None] = mapped_column(Text)
    property_sub_type_en: Mapped[str | None] = mapped_column(Text)
    master_project_en: Mapped[str | None] = mapped_column(Text)
    project_name_en: Mapped[str | None] = mapped_column(Text)
    land_type_en: Mapped[str | None] = mapped_column(Text)
    is_free_hold: Mapped[bool | None] = mapped_column(Boolean)
    creation_date: Mapped[date | None] = mapped_column(Date)


class ProjectModel(Base):
    """RERA developer-registered project."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    project_number: Mapped[int | None] = mapped_column(BigInteger)
    project_name: Mapped[str | None] = mapped_column(Text)
    master_developer_id: Mapped[int | None] = mapped_column(BigInteger)
    developer_id: Mapped[int | None] = mapped_column(BigInteger, index=True)
    developer_name: Mapped[str | None] = mapped_column(Text)
    master_developer_name: Mapped[str | None] = mapped_column(Text)
    project_status: Mapped[str | None] = mapped_column(Text)
    percent_completed: Mapped[float | None] = mapped_column(Float)
    project_start_date: Mapped[date | None] = mapped_column(Date)
    project_end_date: Mapped[date | None] = mapped_column(Date)
    completion_date: Mapped[date | None] = mapped_column(Date)
    area_name_en: Mapped[str | None] = mapped_column(Text)
    master_project_en: Mapped[str | None] = mapped_column(Text)
    zoning_authority_en: Mapped[str | None] = mapped_column(Text)
    project_description_en: Mapped[str | None] = mapped_column(Text)
    no_of_lands: Mapped[int | None] = mapped_column(BigInteger)
    no_of_buildings: Mapped[int | None] = mapped_column(BigInteger)
    no_of_villas: Mapped[int | None] = mapped_column(BigInteger)
    no_of_units: Mapped[int | None] = mapped_column(BigInteger)
    escrow_agent_name: Mapped[str | None] = mapped_column(Text)


class DeveloperModel(Base):
    __tablename__ = "developers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    developer_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    developer_number: Mapped[int | None] = mapped_column(BigInteger)
    developer_name_en: Mapped[str | None] = mapped_column(Text)
    license_number: Mapped[str | None] = mapped_column(Text)
    license_source_en: Mapped[str | None] = mapped_column(Text)
    license_type_en: Mapped[str | None] = mapped_column(Text)
    license_issue_date: Mapped[date | None] = mapped_column(Date)
    license_expiry_date: Mapped[date | None] = mapped_column(Date)
    legal_status_en: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(Text)
    fax: Mapped[str | None] = mapped_column(Text)
    webpage: Mapped[str | None] = mapped_column(Text)
    registration_date: Mapped[date | None] = mapped_column(Date)


class _CompanyProjectColumns:
    """Columns shared by contractor and consultant project listings."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_no: Mapped[int | None] = mapped_column(BigInteger)
    parcel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    project_type: Mapped[str | None] = mapped_column(Text)
    building_type: Mapped[str | None] = mapped_column(Text)
    community_name: Mapped[str | None] = mapped_column(Text)
    building_count: Mapped[int | None] = mapped_column(BigInteger)
    first_building_permit_date: Mapped[date | None] = mapped_column(Date)
    last_app_submission_date: Mapped[date | None] = mapped_column(Date)
    project_status: Mapped[str | None] = mapped_column(Text)
    project_closing_date: Mapped[date | None] = mapped_column(Date)


class ContractorProjectModel(_CompanyProjectColumns, Base):
    """Append-only: one row per contractor/project pairing."""

    __tablename__ = "contractor_projects"

    contractor_license_no: Mapped[int | None] = mapped_column(BigInteger, index=True)
    contractor_english: Mapped[str | None] = mapped_column(Text)
    consultant_english: Mapped[str | None] = mapped_column(Text)


class ConsultantProjectModel(_CompanyProjectColumns, Base):
    """Append-only: one row per consultant/project pairing."""

    __tablename__ = "consultant_projects"

    consultant_license_no: Mapped[int | None] = mapped_column(BigInteger, index=True)
    consultant_english: Mapped[str | None] = mapped_column(Text)
    contractor_english: Mapped[str | None] = mapped_column(Text)


class AreaModel(Base):
    """Area directory derived from land registry zip codes."""

    __tablename__ = "areas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    munc_zip_code: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    area_name_en: Mapped[str] = mapped_column(Text, nullable=False)


class CompanyModel(Base):
    """Company directory with running project counts per (license, type)."""

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    license_no: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name_en: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    project_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("license_no", "type", name="uq_companies_license_type"),
        CheckConstraint(
            "type IN ('developer', 'contractor', 'consultant')",
            name="check_company_type_valid",
        ),
        CheckConstraint("project_count >= 0", name="check_project_count_non_negative"),
    )


class ImportLogModel(Base):
    """One row per CSV import run started from the CLI."""

    __tablename__ = "import_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    records_imported: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    error_message: Mapped[str | None] = mapped_column(Text)
    imported_by: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="check_import_status_valid",
        ),
        CheckConstraint("records_imported >= 0", name="check_records_imported_non_negative"),
        CheckConstraint("records_failed >= 0", name="check_records_failed_non_negative"),
    )
