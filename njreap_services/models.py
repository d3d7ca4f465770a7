from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class JobStatus(str, Enum):
    PENDING = "pending"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    INVOICE_SENT = "invoice_sent"
    INVOICE_PAID = "invoice_paid"


class ServiceType(str, Enum):
    PHOTOGRAPHY = "photography"
    FLOOR_PLANS = "floor_plans"
    VIRTUAL_TOUR = "virtual_tour"
    AERIAL_PHOTOGRAPHY = "aerial_photography"
    APPRAISAL = "appraisal"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class LineItem(_CamelModel):
    id: str
    name: str
    price: float = 0


class PropertyData(_CamelModel):
    """Property record as returned by the lookup service"""
    id: Optional[Union[str, int]] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    county_data: Dict[str, Any] = Field(default_factory=dict, alias="countyData")


class BookingForm(_CamelModel):
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    selected_services: List[str] = Field(default_factory=list, alias="selectedServices")
    selected_date: Optional[str] = Field(default=None, alias="selectedDate")
    selected_time: Optional[str] = Field(default=None, alias="selectedTime")
    user_entered_sqft: Optional[Union[str, int]] = Field(default=None, alias="userEnteredSqFt")
    discount_code: Optional[str] = Field(default=None, alias="discountCode")
    discount_amount: Optional[float] = Field(default=None, alias="discountAmount")
    service_breakdown: Optional[List[LineItem]] = Field(default=None, alias="serviceBreakdown")
    referral_source: Optional[str] = Field(default=None, alias="referralSource")
    referral_other_description: Optional[str] = Field(default=None, alias="referralOtherDescription")
    appraisal_property_type: Optional[str] = Field(default=None, alias="appraisalPropertyType")
    appraisal_intended_use: Optional[str] = Field(default=None, alias="appraisalIntendedUse")
    appraisal_report_option: Optional[str] = Field(default=None, alias="appraisalReportOption")
    appraisal_effective_date: Optional[str] = Field(default=None, alias="appraisalEffectiveDate")

    @field_validator("user_entered_sqft", mode="before")
    @classmethod
    def blank_sqft_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CalendarEventRequest(_CamelModel):
    form_data: BookingForm = Field(default_factory=BookingForm, alias="formData")
    property_data: PropertyData = Field(default_factory=PropertyData, alias="propertyData")


class AvailabilityRequest(_CamelModel):
    date: Optional[str] = None


class ServiceRequestData(_CamelModel):
    form_data: BookingForm = Field(default_factory=BookingForm, alias="formData")
    property_data: PropertyData = Field(default_factory=PropertyData, alias="propertyData")


class ContactEmailRequest(_CamelModel):
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    email: str = ""
    phone: Optional[str] = None
    message: str = ""
    is_service_request: bool = Field(default=False, alias="isServiceRequest")
    service_request_data: Optional[ServiceRequestData] = Field(default=None, alias="serviceRequestData")


class PropertySearchRequest(BaseModel):
    filters: Dict[str, Any] = Field(default_factory=dict)
    limit: int = 5

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("limit must be at least 1")
        return min(value, 25)


class QuoteRequest(_CamelModel):
    selected_services: List[str] = Field(default_factory=list, alias="selectedServices")
    property_data: PropertyData = Field(default_factory=PropertyData, alias="propertyData")
    user_entered_sqft: Optional[Union[str, int]] = Field(default=None, alias="userEnteredSqFt")
    discount_code: Optional[str] = Field(default=None, alias="discountCode")


class BookingRequest(_CamelModel):
    form_data: BookingForm = Field(alias="formData")
    property_data: PropertyData = Field(default_factory=PropertyData, alias="propertyData")
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey")


class JobCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    property_address: Optional[str] = None
    service_type: ServiceType = ServiceType.PHOTOGRAPHY
    description: Optional[str] = None
    quoted_amount: Optional[float] = None
    scheduled_date: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    raw_njpr_data: Optional[str] = None
    referral_source: Optional[str] = None
    referral_other_description: Optional[str] = None


class InvoiceRequest(_CamelModel):
    job_id: str = Field(alias="jobId")
    amount: float
    description: Optional[str] = None


class InvoiceStatusRequest(_CamelModel):
    job_id: str = Field(alias="jobId")


class JobUpdate(BaseModel):
    job_id: str = Field(alias="jobId")
    update_data: Dict[str, Any] = Field(default_factory=dict, alias="updateData")

    model_config = ConfigDict(populate_by_name=True)
