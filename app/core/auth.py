from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from .settings import Settings, get_settings

# Tells FastAPI where to look for the token. The service never issues
# tokens itself; they are provisioned through the TOKENS setting.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def require_auth_token(
    token: Annotated[str, Depends(oauth2_scheme)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    """
    Dependency guarding the administration routes.

    If no token is provided, OAuth2PasswordBearer automatically raises
    a 401 Unauthorized exception. A token that is not configured in
    ``settings.TOKENS`` is rejected the same way.
    """
    if not token or token not in settings.TOKENS:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return token
