import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.errors import ParseId
from app.db import GetDb
from app.modules.auth.deps import FAMILY_ROLES, RequireFamilyAdmin, RequireFamilyRole, UserContext
from app.modules.auth.models import Family, User
from app.modules.auth.schemas import MemberOut
from app.modules.auth.service import HashPassword
from app.modules.families.schemas import CreateMemberRequest, FamilyOut, UpdateMemberRequest

router = APIRouter(prefix="/api/families", tags=["families"])
logger = logging.getLogger("families.members")


def _BuildMemberOut(record: User) -> MemberOut:
    return MemberOut(
        Id=record.Id,
        FamilyId=record.FamilyId,
        Username=record.Username,
        FirstName=record.FirstName,
        LastName=record.LastName,
        Email=record.Email,
        Role=record.Role,
        CreatedAt=record.CreatedAt,
    )


def _LoadMember(db: Session, family_id: str, member_id: str) -> User:
    member_id = ParseId(member_id, "Member")
    target = db.query(User).filter(User.Id == member_id, User.FamilyId == family_id).first()
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return target


def _CountAdmins(db: Session, family_id: str) -> int:
    return db.query(User).filter(User.FamilyId == family_id, User.Role == "Admin").count()


@router.get("/me", response_model=FamilyOut)
def GetMyFamily(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> FamilyOut:
    family = db.query(Family).filter(Family.Id == user.FamilyId).first()
    if not family:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Family not found")
    members = db.query(User).filter(User.FamilyId == family.Id).order_by(User.Username.asc()).all()
    return FamilyOut(
        Id=family.Id,
        Name=family.Name,
        CreatedAt=family.CreatedAt,
        Members=[_BuildMemberOut(entry) for entry in members],
    )


@router.post("/members", response_model=MemberOut, status_code=status.HTTP_201_CREATED)
def CreateMember(
    payload: CreateMemberRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyAdmin),
) -> MemberOut:
    username = payload.Username.strip()
    if not username:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username required")
    existing = db.query(User).filter(User.Username == username).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")

    min_length = Settings.PasswordMinLength
    if len(payload.Password) < min_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {min_length} characters",
        )

    role = payload.Role.strip()
    if role not in FAMILY_ROLES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role")

    record = User(
        FamilyId=user.FamilyId,
        Username=username,
        PasswordHash=HashPassword(payload.Password),
        FirstName=payload.FirstName.strip() if payload.FirstName else None,
        LastName=payload.LastName.strip() if payload.LastName else None,
        Email=payload.Email.strip().lower() if payload.Email else None,
        Role=role,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")
    db.refresh(record)
    logger.info("member added", extra={"family_id": user.FamilyId, "member_id": record.Id, "role": role})
    return _BuildMemberOut(record)


@router.put("/members/{member_id}", response_model=MemberOut)
def UpdateMember(
    member_id: str,
    payload: UpdateMemberRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyAdmin),
) -> MemberOut:
    target = _LoadMember(db, user.FamilyId, member_id)
    fields = payload.model_fields_set

    if "Role" in fields and payload.Role is not None:
        role = payload.Role.strip()
        if role not in FAMILY_ROLES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role")
        if target.Role == "Admin" and role != "Admin" and _CountAdmins(db, user.FamilyId) <= 1:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Family must keep at least one admin")
        target.Role = role
    if "FirstName" in fields:
        target.FirstName = payload.FirstName.strip() if payload.FirstName else None
    if "LastName" in fields:
        target.LastName = payload.LastName.strip() if payload.LastName else None
    if "Email" in fields:
        target.Email = payload.Email.strip().lower() if payload.Email else None

    db.add(target)
    db.commit()
    db.refresh(target)
    return _BuildMemberOut(target)


@router.delete("/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def DeleteMember(
    member_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyAdmin),
) -> None:
    target = _LoadMember(db, user.FamilyId, member_id)
    if target.Role == "Admin" and _CountAdmins(db, user.FamilyId) <= 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Family must keep at least one admin")
    db.delete(target)
    db.commit()
    logger.info("member removed", extra={"family_id": user.FamilyId, "member_id": target.Id})
