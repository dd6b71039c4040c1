"""
Resolver request/response models
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from enum import Enum


class ResponseVariant(str, Enum):
    """How the resolver wants the media to be fetched"""
    REDIRECT = "redirect"  # direct media URL
    TUNNEL = "tunnel"      # stream relayed by the resolver itself
    PICKER = "picker"      # several candidate variants


class ResolverErrorDetail(BaseModel):
    """Error body returned by the resolver"""
    model_config = ConfigDict(extra="allow")

    code: Optional[str] = None


class PickerItem(BaseModel):
    """One candidate variant of a picker response"""
    model_config = ConfigDict(extra="allow")

    url: str
    filename: Optional[str] = None
    type: Optional[str] = None


class ResolverResponse(BaseModel):
    """Raw resolver answer; which fields are set depends on status"""
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    url: Optional[str] = None
    filename: Optional[str] = None
    picker: Optional[List[PickerItem]] = None
    error: Optional[ResolverErrorDetail] = None


class AcquisitionPlan(BaseModel):
    """Where to fetch the media bytes from and what to call the result"""
    model_config = ConfigDict(frozen=True)

    variant: ResponseVariant
    url: str
    filename: str = Field(..., min_length=1)
