"""API router for account registration, sessions and credentials."""

from typing import Optional

from fastapi import APIRouter, Depends, status

from ....application.services.credential_service import (
    FORGOT_PASSWORD_MESSAGE,
    INVALID_RESET_TOKEN_MESSAGE,
    AuthResult,
    CredentialService,
    Registration,
)
from ....core.dependencies import get_credential_service
from ....domain.errors import BadRequestError
from ....services.token_service import SessionClaims
from ..dependencies import get_current_session
from ..schemas.auth import (
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    RegisterAgencyRequest,
    RegisterClubRequest,
    RegisterEscortRequest,
    RegisterMemberRequest,
    ResetPasswordRequest,
)
from ..schemas.common import ApiResponse, SoftDeleteResponse, serialize_user

router = APIRouter(prefix="/auth", tags=["auth"])


async def _register(service: CredentialService, registration: Registration) -> ApiResponse:
    result = await service.register(registration)
    return ApiResponse(success=result.success, message=result.message, data={"email": result.email})


def _auth_payload(result: AuthResult) -> dict:
    return {"user": serialize_user(result.user), "token": result.token}


@router.post(
    "/register/escort",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def register_escort(
    payload: RegisterEscortRequest,
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    return await _register(service, payload.to_registration())


@router.post(
    "/register/member",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def register_member(
    payload: RegisterMemberRequest,
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    return await _register(service, payload.to_registration())


@router.post(
    "/register/agency",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def register_agency(
    payload: RegisterAgencyRequest,
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    return await _register(service, payload.to_registration())


@router.post(
    "/register/club",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def register_club(
    payload: RegisterClubRequest,
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    return await _register(service, payload.to_registration())


@router.post("/login", response_model=ApiResponse, response_model_exclude_none=True)
async def login(
    payload: LoginRequest,
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    result = await service.login(str(payload.email), payload.password)
    return ApiResponse(success=True, message="Login successful", data=_auth_payload(result))


@router.get("/me", response_model=ApiResponse, response_model_exclude_none=True)
async def get_me(
    session: SessionClaims = Depends(get_current_session),
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    user = await service.get_current_user(session.user_id)
    return ApiResponse(success=True, data=serialize_user(user))


@router.delete("/me", response_model=SoftDeleteResponse, response_model_exclude_none=True)
async def delete_me(
    session: SessionClaims = Depends(get_current_session),
    service: CredentialService = Depends(get_credential_service),
) -> SoftDeleteResponse:
    deleted_at = await service.soft_delete_account(session.user_id)
    return SoftDeleteResponse(
        success=True,
        message="Account deleted",
        soft_deleted_at=deleted_at,
        data={"softDeletedAt": deleted_at},
    )


@router.post("/consent/privacy", response_model=ApiResponse, response_model_exclude_none=True)
async def accept_privacy_consent(
    session: SessionClaims = Depends(get_current_session),
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    user = await service.accept_privacy_consent(session.user_id)
    return ApiResponse(success=True, message="Privacy consent recorded", data=serialize_user(user))


@router.get("/verify-email", response_model=ApiResponse, response_model_exclude_none=True)
async def verify_email(
    token: Optional[str] = None,
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    if not token or not token.strip():
        raise BadRequestError("Verification token is required")
    result = await service.verify_email(token.strip())
    return ApiResponse(success=True, message="Email verified successfully", data=_auth_payload(result))


@router.post("/resend-verification", response_model=ApiResponse, response_model_exclude_none=True)
async def resend_verification(
    payload: EmailRequest,
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    await service.resend_verification(str(payload.email))
    return ApiResponse(success=True, message="Verification email sent")


@router.put("/change-password", response_model=ApiResponse, response_model_exclude_none=True)
async def change_password(
    payload: ChangePasswordRequest,
    session: SessionClaims = Depends(get_current_session),
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    token = await service.change_password(
        session.user_id, payload.current_password, payload.new_password
    )
    return ApiResponse(success=True, message="Password changed successfully", data={"token": token})


@router.post("/forgot-password", response_model=ApiResponse, response_model_exclude_none=True)
async def forgot_password(
    payload: EmailRequest,
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    await service.forgot_password(str(payload.email))
    return ApiResponse(success=True, message=FORGOT_PASSWORD_MESSAGE)


@router.get("/reset-password/validate", response_model=ApiResponse, response_model_exclude_none=True)
async def validate_reset_token(
    token: Optional[str] = None,
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    if not token or not token.strip():
        raise BadRequestError(INVALID_RESET_TOKEN_MESSAGE)
    await service.validate_reset_token(token.strip())
    return ApiResponse(success=True, data={"valid": True})


@router.post("/reset-password", response_model=ApiResponse, response_model_exclude_none=True)
async def reset_password(
    payload: ResetPasswordRequest,
    service: CredentialService = Depends(get_credential_service),
) -> ApiResponse:
    await service.reset_password(payload.token, payload.new_password)
    return ApiResponse(success=True, message="Password has been reset successfully")
