"""SQLAlchemy ORM models for the drug interaction engine.

All models inherit from Base which provides:
- id: UUID primary key
- created_at: Timestamp
"""

from medrefer_ddi.core.database import Base
from medrefer_ddi.models.drug_interaction_alert import DrugInteractionAlertRecord

__all__ = [
    "Base",
    "DrugInteractionAlertRecord",
]
