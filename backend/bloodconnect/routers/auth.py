from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Security, status
from fastapi.security import OAuth2PasswordBearer

from ..database import settings
from ..utils.security import decode_token

router = APIRouter(prefix="/auth", tags=["auth"])
# Tokens are issued by the external identity provider; this service only reads them.
bearer_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


async def get_current_user_id(token: str | None = Security(bearer_scheme)) -> str:
    if not token:
        if settings.auto_authorize_demo:
            return settings.demo_user_id
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing authorization token")

    try:
        payload = decode_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return user_id


@router.get("/me")
async def who_am_i(user_id: str = Depends(get_current_user_id)) -> Dict[str, str]:
    return {"userId": user_id}
