"""Model registry -- importing this package registers every table on Base.metadata."""

from src.crm.models.user import User
from src.crm.records.models import CompanyModel, ContactModel
from src.crm.deals.models import DealModel, StageModel
from src.crm.activities.models import ActivityModel, NoteModel

__all__ = [
    "ActivityModel",
    "CompanyModel",
    "ContactModel",
    "DealModel",
    "NoteModel",
    "StageModel",
    "User",
]
