# platelink/services/user_directory.py
"""
User directory: searchers and owners, with the owner's single contact profile.
Creating a user also opens their ledger account (signup bonus included), in
the same transaction for the SQL backend.
"""

import threading
from abc import ABC, abstractmethod
from typing import Optional

from platelink.domain import User, ContactMethods
from platelink.errors import NotFoundError, ValidationError
from platelink.models.user import User as UserRow
from platelink.utils.ids import new_id, utcnow
from platelink.utils.retry import retry_transient
from platelink.utils.logger import get_logger

logger = get_logger(__name__)


def _check_name(full_name):
    if not full_name or not full_name.strip():
        raise ValidationError("InvalidName", "Full name is required")
    return " ".join(full_name.split())


def _contact(phone, email, contact_methods):
    """
    Clean phone/email and settle the methods. Without explicit methods the phone
    is enabled when there is one. An enabled method must have a value.
    """
    phone = (phone or "").strip() or None
    email = (email or "").strip() or None
    methods = contact_methods or ContactMethods(phone=phone is not None)
    missing = methods.missing_values(phone, email)
    if missing:
        raise ValidationError(
            "MissingContactValue",
            f"Enabled contact methods need a phone number or email: {', '.join(missing)}",
        )
    return phone, email, methods


class UserDirectory(ABC):
    def __init__(self, ledger, signup_bonus: int = 0):
        self._ledger = ledger
        self.signup_bonus = signup_bonus

    @abstractmethod
    def create_user(self, full_name: str, phone: str = None, email: str = None,
                    contact_methods: Optional[ContactMethods] = None, user_id: str = None) -> User:
        pass

    @abstractmethod
    def get(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def update_contact(self, user_id: str, phone: str = None, email: str = None,
                       contact_methods: Optional[ContactMethods] = None) -> User:
        pass

    def require(self, user_id: str) -> User:
        user = self.get(user_id)
        if user is None:
            raise NotFoundError("UserNotFound", f"User {user_id} not found")
        return user


# ── In-memory ────────────────────────────────────────────────────────────────

class InMemoryUserDirectory(UserDirectory):
    def __init__(self, ledger, signup_bonus=0):
        super().__init__(ledger, signup_bonus)
        self._users = {}
        self._guard = threading.Lock()

    def create_user(self, full_name, phone=None, email=None, contact_methods=None, user_id=None):
        full_name = _check_name(full_name)
        phone, email, methods = _contact(phone, email, contact_methods)
        user = User(
            user_id=user_id or new_id(),
            full_name=full_name,
            phone=phone,
            email=email,
            contact_methods=methods,
            created_at=utcnow(),
        )
        with self._guard:
            if user.user_id in self._users:
                raise ValidationError("DuplicateUser", f"User {user.user_id} already exists")
            self._users[user.user_id] = user
        self._ledger.open_account(user.user_id, self.signup_bonus)
        logger.info(f"Created user {user.user_id} ({user.full_name})")
        return user

    def get(self, user_id):
        return self._users.get(user_id)

    def update_contact(self, user_id, phone=None, email=None, contact_methods=None):
        with self._guard:
            user = self._users.get(user_id)
            if user is None:
                raise NotFoundError("UserNotFound", f"User {user_id} not found")
            phone, email, methods = _contact(
                phone if phone is not None else user.phone,
                email if email is not None else user.email,
                contact_methods or user.contact_methods,
            )
            updated = User(
                user_id=user.user_id,
                full_name=user.full_name,
                phone=phone,
                email=email,
                contact_methods=methods,
                created_at=user.created_at,
            )
            self._users[user_id] = updated
        return updated


# ── SQLAlchemy ───────────────────────────────────────────────────────────────

def _to_user(row: UserRow) -> User:
    return User(
        user_id=row.id,
        full_name=row.full_name,
        phone=row.phone,
        email=row.email,
        contact_methods=ContactMethods(
            phone=bool(row.allow_phone),
            sms=bool(row.allow_sms),
            whatsapp=bool(row.allow_whatsapp),
            email=bool(row.allow_email),
        ),
        created_at=row.created_at,
    )


def _apply_methods(row: UserRow, methods: ContactMethods):
    row.allow_phone = methods.phone
    row.allow_sms = methods.sms
    row.allow_whatsapp = methods.whatsapp
    row.allow_email = methods.email


class SqlUserDirectory(UserDirectory):
    def __init__(self, ledger, signup_bonus, session_factory):
        super().__init__(ledger, signup_bonus)
        self._session_factory = session_factory

    @retry_transient(attempts=1)     # not idempotent
    def create_user(self, full_name, phone=None, email=None, contact_methods=None, user_id=None):
        full_name = _check_name(full_name)
        phone, email, methods = _contact(phone, email, contact_methods)
        row = UserRow(
            id=user_id or new_id(),
            full_name=full_name,
            phone=phone,
            email=email,
            created_at=utcnow(),
        )
        _apply_methods(row, methods)
        with self._session_factory() as db:
            if db.get(UserRow, row.id):
                raise ValidationError("DuplicateUser", f"User {row.id} already exists")
            db.add(row)
            self._ledger._open_account_in(db, row.id, self.signup_bonus)
            db.commit()
        logger.info(f"Created user {row.id} ({row.full_name})")
        return _to_user(row)

    @retry_transient
    def get(self, user_id):
        with self._session_factory() as db:
            row = db.get(UserRow, user_id)
            return _to_user(row) if row else None

    @retry_transient
    def update_contact(self, user_id, phone=None, email=None, contact_methods=None):
        with self._session_factory() as db:
            row = db.get(UserRow, user_id)
            if not row:
                raise NotFoundError("UserNotFound", f"User {user_id} not found")
            current = _to_user(row)
            phone, email, methods = _contact(
                phone if phone is not None else current.phone,
                email if email is not None else current.email,
                contact_methods or current.contact_methods,
            )
            row.phone = phone
            row.email = email
            _apply_methods(row, methods)
            db.commit()
            return _to_user(row)
