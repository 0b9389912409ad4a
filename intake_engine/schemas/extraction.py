"""
Data models for name/address extraction results.
"""

from typing import Optional

from pydantic import BaseModel

DEFAULT_PROVENANCE = "default"
UNKNOWN_CALLER = "Unknown Caller"
UNKNOWN_SMS_CALLER = "Unknown (SMS)"
NOT_PROVIDED = "Not provided"
APPROXIMATE_TAG = "(Approximate)"


class ExtractionResult(BaseModel):
    """The single selected value for one entity type."""

    value: str
    provenance: str
    raw_value: Optional[str] = None  # Address before spoken-number normalization
    score: Optional[float] = None

    @property
    def is_default(self) -> bool:
        return self.provenance == DEFAULT_PROVENANCE

    @property
    def pattern_id(self) -> Optional[str]:
        if self.is_default:
            return None
        return self.provenance.split("/", 1)[-1]


class SmsExtractionResult(BaseModel):
    """Name and address pulled from a single SMS body."""

    name: ExtractionResult
    address: ExtractionResult
    completeness: float  # Share of {name, address} that are not defaults
    address_is_complete: bool
