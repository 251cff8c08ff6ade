from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.models import User
from app.modules.auth.service import DecodeAccessToken

FAMILY_ROLES = ("Admin", "Editor", "Viewer")
WRITE_ROLES = {"Admin", "Editor"}


@dataclass
class UserContext:
    Id: str
    Username: str
    FamilyId: str
    Role: str


def RequireAuthenticated(
    request: Request,
    db: Session = Depends(GetDb),
) -> UserContext:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    token = auth_header.replace("Bearer ", "", 1).strip()
    claims = DecodeAccessToken(token)

    user = db.query(User).filter(User.Id == claims["sub"]).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    # Role and family come from the stored member so changes apply before the token expires.
    return UserContext(Id=user.Id, Username=user.Username, FamilyId=user.FamilyId, Role=user.Role)


def RequireFamilyRole(write: bool = False):
    def _checker(user: UserContext = Depends(RequireAuthenticated)) -> UserContext:
        if user.Role not in FAMILY_ROLES:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        if write and user.Role not in WRITE_ROLES:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return user

    return _checker


def RequireFamilyAdmin(user: UserContext = Depends(RequireAuthenticated)) -> UserContext:
    if user.Role != "Admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return user
