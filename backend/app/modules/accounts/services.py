import logging

from sqlalchemy.orm import Session

from app.core.errors import InvalidRequestError, NotFoundError, ParseId
from app.modules.accounts.models import ACCOUNT_TYPES, BankAccount
from app.services.money import Round2

logger = logging.getLogger("accounts")


def NormalizeAccountType(value: str | None) -> str:
    account_type = (value or "").strip().lower()
    if account_type not in ACCOUNT_TYPES:
        raise InvalidRequestError(
            f"Account type must be one of: {', '.join(ACCOUNT_TYPES)}.",
            error="Invalid account type",
            code="INVALID_ACCOUNT_TYPE",
        )
    return account_type


def _NormalizeName(value: str | None) -> str:
    name = (value or "").strip()
    if not name:
        raise InvalidRequestError("Account name is required.", error="Invalid name")
    return name


def GetBankAccount(db: Session, family_id: str, account_id: str) -> BankAccount:
    account_id = ParseId(account_id, "Bank account")
    record = db.query(BankAccount).filter(BankAccount.Id == account_id, BankAccount.FamilyId == family_id).first()
    if not record:
        raise NotFoundError("The specified bank account was not found.", error="Bank account not found")
    return record


def ListBankAccounts(db: Session, family_id: str, include_inactive: bool = False) -> list[BankAccount]:
    query = db.query(BankAccount).filter(BankAccount.FamilyId == family_id)
    if not include_inactive:
        query = query.filter(BankAccount.IsActive.is_(True))
    return query.order_by(BankAccount.AccountType.asc(), BankAccount.Name.asc()).all()


def CreateBankAccount(db: Session, family_id: str, payload: dict) -> BankAccount:
    record = BankAccount(
        FamilyId=family_id,
        Name=_NormalizeName(payload.get("Name")),
        Institution=(payload.get("Institution") or "").strip() or None,
        AccountType=NormalizeAccountType(payload.get("AccountType")),
        CurrentBalance=Round2(payload.get("CurrentBalance") or 0),
        IsActive=payload.get("IsActive", True),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("bank account created", extra={"family_id": family_id, "account_id": record.Id})
    return record


def UpdateBankAccount(db: Session, family_id: str, account_id: str, changes: dict) -> BankAccount:
    record = GetBankAccount(db, family_id, account_id)
    if changes.get("Name") is not None:
        record.Name = _NormalizeName(changes["Name"])
    if "Institution" in changes:
        record.Institution = (changes["Institution"] or "").strip() or None
    if changes.get("AccountType") is not None:
        record.AccountType = NormalizeAccountType(changes["AccountType"])
    if changes.get("CurrentBalance") is not None:
        record.CurrentBalance = Round2(changes["CurrentBalance"])
    if changes.get("IsActive") is not None:
        record.IsActive = bool(changes["IsActive"])
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def DeleteBankAccount(db: Session, family_id: str, account_id: str) -> None:
    record = GetBankAccount(db, family_id, account_id)
    db.delete(record)
    db.commit()
    logger.info("bank account deleted", extra={"family_id": family_id, "account_id": record.Id})
