from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...application.services.credential_service import CredentialService
from ...core.dependencies import get_credential_service
from ...domain.errors import UnauthorizedError
from ...services.token_service import SessionClaims

_bearer_scheme = HTTPBearer(auto_error=False)


def get_current_session(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    credential_service: CredentialService = Depends(get_credential_service),
) -> SessionClaims:
    """Resolve the bearer session and attach its claims to ``request.state``."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("No token provided")
    claims = credential_service.authenticate_session(credentials.credentials)
    request.state.session = claims
    return claims
