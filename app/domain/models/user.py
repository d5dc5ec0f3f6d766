"""User domain model shared by every account type."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Type, Union


class UserType(str, Enum):
    ESCORT = "escort"
    MEMBER = "member"
    AGENCY = "agency"
    CLUB = "club"


@dataclass(slots=True)
class EscortProfile:
    user_type: ClassVar[UserType] = UserType.ESCORT

    name: str
    phone: str
    city: str
    age: int

    @property
    def display_name(self) -> str:
        return self.name


@dataclass(slots=True)
class MemberProfile:
    user_type: ClassVar[UserType] = UserType.MEMBER

    username: str
    city: str

    @property
    def display_name(self) -> str:
        return self.username


@dataclass(slots=True)
class AgencyProfile:
    user_type: ClassVar[UserType] = UserType.AGENCY

    agency_name: str
    phone: str
    city: str
    website: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.agency_name


@dataclass(slots=True)
class ClubProfile:
    user_type: ClassVar[UserType] = UserType.CLUB

    club_name: str
    phone: str
    address: str
    city: str
    website: Optional[str] = None
    opening_hours: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.club_name


UserProfile = Union[EscortProfile, MemberProfile, AgencyProfile, ClubProfile]

PROFILE_TYPES: Dict[UserType, Type[Any]] = {
    UserType.ESCORT: EscortProfile,
    UserType.MEMBER: MemberProfile,
    UserType.AGENCY: AgencyProfile,
    UserType.CLUB: ClubProfile,
}


def profile_to_dict(profile: UserProfile) -> Dict[str, Any]:
    return asdict(profile)


def profile_from_dict(user_type: UserType, data: Dict[str, Any]) -> UserProfile:
    """Rebuild the profile variant selected by ``user_type``."""
    profile_cls = PROFILE_TYPES[UserType(user_type)]
    return profile_cls(**data)


@dataclass(slots=True)
class User:
    """
    Account record.

    ``user_type`` is fixed at creation and always matches ``profile``.
    ``token_version`` only grows; session tokens embedding an older value
    are rejected. The raw password reset token is never stored, only its hash.
    """

    id: str
    email: str
    password_hash: str
    user_type: UserType
    profile: UserProfile
    is_active: bool
    email_verified: bool
    token_version: int
    created_at: datetime
    updated_at: datetime
    soft_deleted_at: Optional[datetime] = None
    privacy_consent_accepted_at: Optional[datetime] = None
    email_verification_token: Optional[str] = None
    email_verification_expires: Optional[datetime] = None
    password_reset_token_hash: Optional[str] = None
    password_reset_expires: Optional[datetime] = None
    password_reset_used_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.profile.display_name or self.email

    def __repr__(self) -> str:
        return (
            f"<User id={self.id} email={self.email} type={self.user_type.value} "
            f"active={self.is_active} verified={self.email_verified}>"
        )
