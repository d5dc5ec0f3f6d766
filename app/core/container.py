from dataclasses import dataclass

from ..application.services.credential_service import CredentialService
from .config import Settings
from ..domain.ports.notifications import Notifier
from ..domain.ports.persistence import PersistenceGateway
from ..services.email_service import EmailService
from ..services.passwords import PasswordHasher
from ..services.token_service import TokenService


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    persistence: PersistenceGateway
    password_hasher: PasswordHasher
    token_service: TokenService
    email_service: EmailService
    notifier: Notifier
    credential_service: CredentialService
