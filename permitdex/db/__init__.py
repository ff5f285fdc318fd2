"""Database layer for Permitdex with async SQLAlchemy."""

from permitdex.db.connection import get_session, init_db
from permitdex.db.models import (
    AreaModel,
    Base,
    BuildingModel,
    CompanyModel,
    ConsultantProjectModel,
    ContractorProjectModel,
    DeveloperModel,
    ImportLogModel,
    LandRegistryModel,
    ProjectInformationModel,
    ProjectModel,
)

__all__ = [
    "Base",
    "ProjectInformationModel",
    "LandRegistryModel",
    "BuildingModel",
    "ProjectModel",
    "DeveloperModel",
    "ContractorProjectModel",
    "ConsultantProjectModel",
    "AreaModel",
    "CompanyModel",
    "ImportLogModel",
    "get_session",
    "init_db",
]
