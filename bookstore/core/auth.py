from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from bookstore.core.config import settings

security = HTTPBearer(auto_error=False)

def get_current_identity(creds: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = jwt.decode(creds.credentials, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid access token")
    try:
        payload["user_id"] = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid subject")
    return payload

def require_roles(*roles: str):
    def _checker(identity: dict = Depends(get_current_identity)) -> dict:
        if identity.get("role") not in roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return identity
    return _checker

require_admin = require_roles("admin")
require_staff = require_roles("staff", "admin")
