from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer

from labrecord.core.security import decode_user_id

# Tokens are issued by the identity provider; this service only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


def get_current_user(token: str = Depends(oauth2_scheme)) -> str:
    """Get current user id from JWT token."""
    user_id = decode_user_id(token)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id


def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme)) -> Optional[str]:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    if not token:
        return None
    return decode_user_id(token)
