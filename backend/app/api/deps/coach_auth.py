from fastapi import Depends, Header, HTTPException, status

from app.config import load_settings


def require_coach_identity(
    x_user_id: str | None = Header(None),
    x_api_token: str | None = Header(None),
) -> str:
    settings = load_settings()
    if settings.api_access_token and x_api_token != settings.api_access_token:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API token",
        )
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )
    return x_user_id.strip()


CoachIdentity = Depends(require_coach_identity)
