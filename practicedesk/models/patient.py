"""Pydantic models for patient documents stored in Firestore.

Use these for request validation; the services return plain dicts.
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, Literal, Union

VisitType = Literal["new", "returning"]
Payer = Literal["private", "medical_aid"]


class MedicalAid(BaseModel):
    scheme: str = Field(..., min_length=1)
    plan: Optional[str] = None
    memberNo: str = Field(..., min_length=1)
    dependentNo: Optional[str] = None


class Address(BaseModel):
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    postalCode: Optional[str] = None


def _legacy_payer(v):
    # Older documents and clients used "medical" for medical aid
    if isinstance(v, str) and v.strip().lower() == "medical":
        return "medical_aid"
    return v


class PatientIn(BaseModel):
    firstName: str = ""
    lastName: str = ""
    dob: str = ""  # YYYY-MM-DD, not validated
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[Union[str, Address]] = None
    visitType: VisitType = "new"
    payer: Payer = "private"
    medicalAid: Optional[MedicalAid] = None
    notes: Optional[str] = None

    @field_validator("payer", mode="before")
    @classmethod
    def validate_payer(cls, v):
        return _legacy_payer(v)

    @model_validator(mode="after")
    def check_medical_aid(self):
        if self.payer == "medical_aid":
            if self.medicalAid is None:
                raise ValueError("medicalAid is required when payer is medical_aid")
        else:
            self.medicalAid = None
        return self


class PatientUpdate(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    dob: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[Union[str, Address]] = None
    visitType: Optional[VisitType] = None
    payer: Optional[Payer] = None
    medicalAid: Optional[MedicalAid] = None
    notes: Optional[str] = None

    @field_validator("payer", mode="before")
    @classmethod
    def validate_payer(cls, v):
        return _legacy_payer(v)

    # Omit a field to leave it unchanged; null is not a value these can hold
    @field_validator("firstName", "lastName", "dob", "visitType", "payer")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v

    @model_validator(mode="after")
    def check_medical_aid(self):
        if self.payer == "medical_aid" and self.medicalAid is None:
            raise ValueError("medicalAid is required when payer is medical_aid")
        return self
