from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .directory import UserDirectory
from .security import Caller, decode_access_token
from .stores import UserStore

security = HTTPBearer(auto_error=False)


def get_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> Caller:
    """Resolve the bearer token into the explicit caller context."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )
    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )

    user = UserStore(db).get(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found"
        )
    return Caller(
        user_id=user.id,
        email=user.email,
        permission=UserDirectory(db).permission_of(user.id),
    )


def get_optional_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> Caller | None:
    """Like :func:`get_caller`, but anonymous requests resolve to ``None``."""
    if credentials is None:
        return None
    return get_caller(credentials, db)
