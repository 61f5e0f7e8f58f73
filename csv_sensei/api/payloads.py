"""
Request bodies accepted by the analysis and admin endpoints
"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


Row = Dict[str, Any]
FeatureName = Literal["op_billing", "doctor_roster", "compliance_ai"]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ValidateRequest(CamelModel):
    """Rows of one uploaded file and the industry format they claim to follow"""
    rows: List[Row] = Field(default_factory=list)
    industry: str = Field(default="others", description="doctor_roster, opbilling or others")
    file_name: str = Field(default="upload.json", alias="fileName")


class ComplianceRequest(CamelModel):
    billing_rows: List[Row] = Field(default_factory=list, alias="billingRows")
    roster_rows: List[Row] = Field(default_factory=list, alias="doctorRosterRows")


class InsightsRequest(CamelModel):
    billing_data: List[Row] = Field(default_factory=list, alias="billingData")
    doctor_roster_data: List[Row] = Field(default_factory=list, alias="doctorRosterData")


class ProfileRequest(CamelModel):
    rows: List[Row] = Field(default_factory=list)
    dashboard: Optional[str] = Field(default=None, description="billing, compliance or doctor-roster")
    query: Optional[str] = None


class ForecastRequest(CamelModel):
    rows: List[Row] = Field(default_factory=list)
    date_field: str = Field(alias="dateField")
    value_field: str = Field(alias="valueField")
    window: int = Field(default=3, ge=1)
    horizon: int = Field(default=3, ge=0, le=60)
    z_threshold: float = Field(default=2.0, gt=0, alias="zThreshold")
    group_field: Optional[str] = Field(default=None, alias="groupField")


class ToggleUpdate(CamelModel):
    is_enabled: bool = Field(alias="isEnabled")


class ToggleBatchItem(CamelModel):
    feature_name: FeatureName = Field(alias="featureName")
    is_enabled: bool = Field(alias="isEnabled")


class ToggleBatchUpdate(CamelModel):
    toggles: List[ToggleBatchItem]
