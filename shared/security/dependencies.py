from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from shared.errors import AuthenticationError
from .identity import CallerIdentity
from .jwt_handler import verify_access_token

# Defines the expected header format (Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def resolve_identity(token: str | None) -> CallerIdentity | None:
    if not token:
        return None
    payload = verify_access_token(token)
    if payload is None or payload.get("sub") is None:
        return None
    return CallerIdentity.from_claims(payload)


async def get_current_user(request: Request, token: str = Depends(oauth2_scheme)) -> CallerIdentity:
    """Dependency to validate the JWT and return the caller identity."""
    caller = resolve_identity(token)
    if caller is None:
        raise AuthenticationError("Not authorized", operation="authentication")

    # Store in request state for downstream use (like rate limiting)
    request.state.user_id = caller.user_id
    return caller
