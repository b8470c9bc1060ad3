from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AnalyzeStatus(str, Enum):
    identified = "identified"
    unidentified = "unidentified"


class AnalyzeRequest(BaseModel):
    # Field names follow the mobile client's JSON body.
    photoBase64: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ActiveIngredient(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    name: Optional[str] = None
    concentration: Optional[str] = None


class FirstAid(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    eyes: Optional[str] = None
    skin: Optional[str] = None
    ingestion: Optional[str] = None
    inhalation: Optional[str] = None


class LabelData(BaseModel):
    """Label fields extracted by the model. Every field may be absent."""
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    epa_registration_number: Optional[str] = None
    product_name: Optional[str] = None
    manufacturer: Optional[str] = None
    signal_word: Optional[str] = None              # Danger / Warning / Caution, not enforced
    active_ingredients: Optional[List[ActiveIngredient]] = None
    precautionary_statements: Optional[List[str]] = None
    first_aid: Optional[FirstAid] = None
    storage_and_disposal: Optional[str] = None


class AnalyzeResponse(LabelData):
    photo_url: str = Field(min_length=1)
    status: AnalyzeStatus
    raw_extraction: Optional[Dict[str, Any]] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ErrorResponse(BaseModel):
    error: str
