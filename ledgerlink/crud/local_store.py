import json
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ledgerlink.models.local_store import LocalSetting

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"
SELECTED_COMPANY_KEY = "selectedCompanyId"
ALL_COMPANIES = "all"


def get_value(db: Session, key: str) -> Optional[str]:
    setting = db.query(LocalSetting).filter(LocalSetting.key == key).first()
    return setting.value if setting else None


def set_value(db: Session, key: str, value: Optional[str]) -> LocalSetting:
    setting = db.query(LocalSetting).filter(LocalSetting.key == key).first()
    if setting:
        setting.value = value
    else:
        setting = LocalSetting(key=key, value=value)
        db.add(setting)
    db.commit()
    db.refresh(setting)
    return setting


def delete_value(db: Session, key: str) -> bool:
    deleted = db.query(LocalSetting).filter(LocalSetting.key == key).delete()
    db.commit()
    return bool(deleted)


# Session (token + user)
def get_token(db: Session) -> Optional[str]:
    return get_value(db, TOKEN_KEY) or None


def get_user(db: Session) -> Optional[dict]:
    """Return the stored user object, or None when absent or unreadable."""
    raw = get_value(db, USER_KEY)
    if not raw:
        return None
    try:
        user = json.loads(raw)
    except ValueError:
        logger.warning("Stored user object is not valid JSON; ignoring it")
        return None
    return user if isinstance(user, dict) else None


def save_session(db: Session, token: str, user: Optional[dict]) -> None:
    set_value(db, TOKEN_KEY, token)
    if user is not None:
        set_value(db, USER_KEY, json.dumps(user))
    logger.info("Session stored in local store")


def clear_session(db: Session) -> None:
    delete_value(db, TOKEN_KEY)
    delete_value(db, USER_KEY)
    delete_value(db, SELECTED_COMPANY_KEY)
    logger.info("Session cleared from local store")


# Selected company ("all" means no company filter)
def get_selected_company_id(db: Session) -> Optional[str]:
    value = get_value(db, SELECTED_COMPANY_KEY)
    if not value or value == ALL_COMPANIES:
        return None
    return value


def set_selected_company_id(db: Session, company_id: Optional[str]) -> None:
    set_value(db, SELECTED_COMPANY_KEY, company_id or ALL_COMPANIES)


def token_reader(session_factory) -> Callable[[], Optional[str]]:
    """
    Build a callable that reads the token with a fresh session on each call.

    The gateway calls it right before every request, so a logout or a new
    login is picked up without restarting anything.
    """
    def read_token() -> Optional[str]:
        db = session_factory()
        try:
            return get_token(db)
        finally:
            db.close()
    return read_token


def user_reader(session_factory) -> Callable[[], Optional[dict]]:
    def read_user() -> Optional[dict]:
        db = session_factory()
        try:
            return get_user(db)
        finally:
            db.close()
    return read_user
