import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.accounts.models import BankAccount
from app.modules.accounts.schemas import BankAccountCreate, BankAccountOut, BankAccountUpdate
from app.modules.accounts.services import (
    CreateBankAccount,
    DeleteBankAccount,
    GetBankAccount,
    ListBankAccounts,
    UpdateBankAccount,
)
from app.modules.auth.deps import RequireFamilyRole, UserContext

router = APIRouter(prefix="/api/bank-accounts", tags=["bank-accounts"])
logger = logging.getLogger("accounts")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("bank accounts database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Accounts storage not initialized. Run alembic upgrade head.",
    ) from exc


def _BuildAccountOut(record: BankAccount) -> BankAccountOut:
    return BankAccountOut(
        Id=record.Id,
        FamilyId=record.FamilyId,
        Name=record.Name,
        Institution=record.Institution,
        AccountType=record.AccountType,
        CurrentBalance=float(record.CurrentBalance or 0),
        IsActive=record.IsActive,
        CreatedAt=record.CreatedAt,
        UpdatedAt=record.UpdatedAt,
    )


@router.get("", response_model=list[BankAccountOut])
def ListAccounts(
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> list[BankAccountOut]:
    try:
        return [_BuildAccountOut(row) for row in ListBankAccounts(db, user.FamilyId, include_inactive)]
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{account_id}", response_model=BankAccountOut)
def GetAccount(
    account_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=False)),
) -> BankAccountOut:
    try:
        return _BuildAccountOut(GetBankAccount(db, user.FamilyId, account_id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("", response_model=BankAccountOut, status_code=status.HTTP_201_CREATED)
def CreateAccount(
    payload: BankAccountCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> BankAccountOut:
    try:
        return _BuildAccountOut(CreateBankAccount(db, user.FamilyId, payload.model_dump()))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.put("/{account_id}", response_model=BankAccountOut)
def UpdateAccount(
    account_id: str,
    payload: BankAccountUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> BankAccountOut:
    try:
        record = UpdateBankAccount(db, user.FamilyId, account_id, payload.model_dump(exclude_unset=True))
        return _BuildAccountOut(record)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def DeleteAccount(
    account_id: str,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireFamilyRole(write=True)),
) -> None:
    try:
        DeleteBankAccount(db, user.FamilyId, account_id)
    except ProgrammingError as exc:
        _handle_db_error(exc)
