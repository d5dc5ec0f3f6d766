"""Uniform response envelope and user serialization."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.domain.models.user import User, profile_to_dict


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(BaseModel):
    """Envelope returned by every endpoint."""

    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None
    error: Optional[str] = None


class SoftDeleteResponse(ApiResponse):
    """Envelope for account deletion; the timestamp is also exposed at the top level."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    soft_deleted_at: datetime


def serialize_user(user: User) -> Dict[str, Any]:
    """
    Public view of an account.

    Variant fields are flattened next to the shared ones. The password hash,
    verification token and reset token hash never leave the server.
    """
    view: Dict[str, Any] = {
        "id": user.id,
        "email": user.email,
        "userType": user.user_type.value,
        "isActive": user.is_active,
        "emailVerified": user.email_verified,
        "tokenVersion": user.token_version,
        "createdAt": user.created_at,
        "updatedAt": user.updated_at,
        "softDeletedAt": user.soft_deleted_at,
        "privacyConsentAcceptedAt": user.privacy_consent_accepted_at,
    }
    for key, value in profile_to_dict(user.profile).items():
        view[to_camel(key)] = value
    return view
