"""Pydantic schemas for the authentication endpoints."""

from typing import Annotated, Optional

from pydantic import AnyHttpUrl, EmailStr, Field, StringConstraints

from app.application.services.credential_service import Registration
from app.domain.models.user import AgencyProfile, ClubProfile, EscortProfile, MemberProfile

from .common import CamelModel

PHONE_PATTERN = r"^[\d\s\-\+\(\)]+$"

Password = Annotated[str, Field(min_length=6, max_length=72)]
DisplayName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]
Phone = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, pattern=PHONE_PATTERN)]
RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Username = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_]+$"),
]


def _url(value: Optional[AnyHttpUrl]) -> Optional[str]:
    return str(value) if value is not None else None


class RegisterEscortRequest(CamelModel):
    """Request schema for escort registration."""

    email: EmailStr
    password: Password
    name: DisplayName
    phone: Phone
    city: RequiredText
    age: int = Field(ge=18, le=99)

    def to_registration(self) -> Registration:
        return Registration(
            email=str(self.email),
            password=self.password,
            profile=EscortProfile(name=self.name, phone=self.phone, city=self.city, age=self.age),
        )


class RegisterMemberRequest(CamelModel):
    """Request schema for member registration."""

    email: EmailStr
    password: Password
    username: Username
    city: RequiredText

    def to_registration(self) -> Registration:
        return Registration(
            email=str(self.email),
            password=self.password,
            profile=MemberProfile(username=self.username, city=self.city),
        )


class RegisterAgencyRequest(CamelModel):
    """Request schema for agency registration."""

    email: EmailStr
    password: Password
    agency_name: DisplayName
    phone: Phone
    city: RequiredText
    website: Optional[AnyHttpUrl] = None

    def to_registration(self) -> Registration:
        return Registration(
            email=str(self.email),
            password=self.password,
            profile=AgencyProfile(
                agency_name=self.agency_name,
                phone=self.phone,
                city=self.city,
                website=_url(self.website),
            ),
        )


class RegisterClubRequest(CamelModel):
    """Request schema for club registration."""

    email: EmailStr
    password: Password
    club_name: DisplayName
    phone: Phone
    address: RequiredText
    city: RequiredText
    website: Optional[AnyHttpUrl] = None
    opening_hours: Optional[Annotated[str, StringConstraints(strip_whitespace=True)]] = None

    def to_registration(self) -> Registration:
        return Registration(
            email=str(self.email),
            password=self.password,
            profile=ClubProfile(
                club_name=self.club_name,
                phone=self.phone,
                address=self.address,
                city=self.city,
                website=_url(self.website),
                opening_hours=self.opening_hours or None,
            ),
        )


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class EmailRequest(CamelModel):
    """Request schema for resend-verification and forgot-password."""

    email: EmailStr


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: Password


class ResetPasswordRequest(CamelModel):
    token: RequiredText
    new_password: Password
