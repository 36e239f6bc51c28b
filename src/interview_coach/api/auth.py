"""Bearer token authentication."""
from __future__ import annotations

from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

security = HTTPBearer()


async def verify_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Security(security),
) -> str:
    """Validate the Bearer token against the configured API token."""
    if credentials.credentials != request.app.state.config.api_token:
        raise HTTPException(status_code=401, detail="Invalid token")
    return credentials.credentials
