"""Import all models to register them with SQLAlchemy metadata."""
from incident_dedup.models.base import Base
from incident_dedup.models.raw_incident import RawIncident
