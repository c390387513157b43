from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class BloodType(str, Enum):
    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"
    ANY = "any"


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Coordinate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    latitude: float = Field(alias="lat")
    longitude: float = Field(alias="lng")


class DonorRecord(ApiModel):
    """A donor profile as read from the donor store."""

    id: str
    name: str
    blood_type: str
    is_donor: bool = True
    location: Coordinate | None = None
    phone: str | None = None
    last_donation_at: datetime | None = None


def _concrete_blood_type(value: BloodType | None) -> BloodType | None:
    if value is BloodType.ANY:
        raise ValueError("a donor profile needs a concrete blood type")
    return value


class DonorCreate(ApiModel):
    name: str = Field(min_length=1)
    blood_type: BloodType
    is_donor: bool = True
    location: Coordinate | None = None
    phone: str | None = None
    last_donation_at: datetime | None = None

    check_blood_type = field_validator("blood_type")(_concrete_blood_type)


class DonorUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1)
    blood_type: BloodType | None = None
    location: Coordinate | None = None
    phone: str | None = None

    check_blood_type = field_validator("blood_type")(_concrete_blood_type)


class DonorStatusUpdate(ApiModel):
    is_donor: bool


class DonationCreate(ApiModel):
    donated_at: datetime | None = None
    hospital: str | None = None


class DonorPublic(DonorRecord):
    eligible: bool
    next_eligible_at: datetime | None = None


class DonorList(ApiModel):
    donors: List[DonorPublic]
