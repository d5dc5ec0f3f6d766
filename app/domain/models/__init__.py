"""Domain models for the classifieds backend."""

from .user import (
    PROFILE_TYPES,
    AgencyProfile,
    ClubProfile,
    EscortProfile,
    MemberProfile,
    User,
    UserProfile,
    UserType,
    profile_from_dict,
    profile_to_dict,
)

__all__ = [
    "AgencyProfile",
    "ClubProfile",
    "EscortProfile",
    "MemberProfile",
    "PROFILE_TYPES",
    "User",
    "UserProfile",
    "UserType",
    "profile_from_dict",
    "profile_to_dict",
]
