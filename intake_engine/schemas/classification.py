"""
Data models for intent/department classification.
"""

from enum import Enum

from pydantic import BaseModel


class Intent(str, Enum):
    POTHOLE = "Pothole / Road Damage"
    STREETLIGHT = "Streetlight Issue"
    WATER_UTILITIES = "Water / Utilities"
    TRASH_SANITATION = "Trash / Sanitation"
    BILLING_PAYMENT = "Billing / Payment"
    SAFETY_CONCERN = "Safety Concern / Suspicious Activity"
    GENERAL_INQUIRY = "General Inquiry"


class Department(str, Enum):
    PUBLIC_WORKS = "Public Works"
    PUBLIC_SAFETY = "Public Safety"
    FINANCE = "Finance"
    PARKS_RECREATION = "Parks & Recreation"
    SANITATION = "Sanitation"
    GENERAL = "General"


# The "unclassified" sentinel pair
UNCLASSIFIED_INTENT = Intent.GENERAL_INQUIRY
UNCLASSIFIED_DEPARTMENT = Department.GENERAL

# Placeholder written on records until background classification lands
PENDING_CLASSIFICATION = "Pending"


class ClassifierMethod(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class ClassificationResult(BaseModel):
    """Intent, department and a one-sentence summary for a piece of text."""

    intent: Intent
    department: Department
    summary: str
    method: ClassifierMethod

    @property
    def is_unclassified(self) -> bool:
        return self.intent == UNCLASSIFIED_INTENT and self.department == UNCLASSIFIED_DEPARTMENT
