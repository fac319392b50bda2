"""Storage backends behind the user ledger.

Two implementations share one interface: ``InMemoryUserStore`` keeps
records in dicts (the default, nothing survives a restart) and
``SqlAlchemyUserStore`` persists them through SQLAlchemy. Neither does any
locking; the ledger serializes writers.
"""

from __future__ import annotations

import abc
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.engine import Engine

from questportal.core.errors import ConflictError
from questportal.database import make_session_factory
from questportal.models.ledger_event import LedgerEventRow
from questportal.models.referral import ReferralRow
from questportal.models.user import UserRow
from questportal.schemas.ledger_schema import LedgerEvent, Referral
from questportal.schemas.user_schema import UserRecord


class UserStore(abc.ABC):
    # users
    @abc.abstractmethod
    def insert(self, fields: dict) -> UserRecord: ...

    @abc.abstractmethod
    def get(self, user_id: int) -> Optional[UserRecord]: ...

    @abc.abstractmethod
    def get_by_username(self, username: str) -> Optional[UserRecord]: ...

    @abc.abstractmethod
    def get_by_referral_code(self, code: str) -> Optional[UserRecord]: ...

    @abc.abstractmethod
    def save(self, record: UserRecord) -> UserRecord: ...

    @abc.abstractmethod
    def list_all(self) -> list[UserRecord]: ...

    # events
    @abc.abstractmethod
    def append_event(self, event: LedgerEvent) -> LedgerEvent: ...

    @abc.abstractmethod
    def list_events(self, kind: Optional[str] = None) -> list[LedgerEvent]: ...

    # referrals
    @abc.abstractmethod
    def insert_referral(self, referral: Referral) -> Referral: ...

    @abc.abstractmethod
    def get_referral_by_invitee(self, invitee_id: int) -> Optional[Referral]: ...

    @abc.abstractmethod
    def save_referral(self, referral: Referral) -> Referral: ...

    def close(self) -> None:
        pass


class InMemoryUserStore(UserStore):
    def __init__(self) -> None:
        self._users: dict[int, UserRecord] = {}
        self._ids_by_username: dict[str, int] = {}
        self._ids_by_referral_code: dict[str, int] = {}
        self._events: list[LedgerEvent] = []
        self._referrals: dict[int, Referral] = {}  # keyed by invitee id
        self._next_id = 1
        self._next_event_id = 1
        self._next_referral_id = 1

    def insert(self, fields: dict) -> UserRecord:
        if fields["username"] in self._ids_by_username:
            raise ConflictError()
        record = UserRecord(id=self._next_id, **fields)
        self._next_id += 1
        self._users[record.id] = record
        self._reindex(None, record)
        return record.model_copy()

    def get(self, user_id: int) -> Optional[UserRecord]:
        record = self._users.get(user_id)
        return record.model_copy() if record else None

    def get_by_username(self, username: str) -> Optional[UserRecord]:
        user_id = self._ids_by_username.get(username)
        return self.get(user_id) if user_id is not None else None

    def get_by_referral_code(self, code: str) -> Optional[UserRecord]:
        user_id = self._ids_by_referral_code.get(code)
        return self.get(user_id) if user_id is not None else None

    def save(self, record: UserRecord) -> UserRecord:
        previous = self._users[record.id]
        if record.referral_code and self._ids_by_referral_code.get(record.referral_code, record.id) != record.id:
            raise ConflictError("Referral code already in use")
        self._users[record.id] = record.model_copy()
        self._reindex(previous, record)
        return record.model_copy()

    def _reindex(self, previous: Optional[UserRecord], current: UserRecord) -> None:
        if previous is not None:
            if previous.username != current.username:
                self._ids_by_username.pop(previous.username, None)
            if previous.referral_code and previous.referral_code != current.referral_code:
                self._ids_by_referral_code.pop(previous.referral_code, None)
        self._ids_by_username[current.username] = current.id
        if current.referral_code:
            self._ids_by_referral_code[current.referral_code] = current.id

    def list_all(self) -> list[UserRecord]:
        return [record.model_copy() for record in self._users.values()]

    def append_event(self, event: LedgerEvent) -> LedgerEvent:
        stored = event.model_copy(update={"id": self._next_event_id})
        self._next_event_id += 1
        self._events.append(stored)
        return stored

    def list_events(self, kind: Optional[str] = None) -> list[LedgerEvent]:
        return [e.model_copy() for e in self._events if kind is None or e.kind == kind]

    def insert_referral(self, referral: Referral) -> Referral:
        if referral.invitee_id in self._referrals:
            raise ConflictError("User was already referred")
        stored = referral.model_copy(update={"id": self._next_referral_id})
        self._next_referral_id += 1
        self._referrals[stored.invitee_id] = stored
        return stored.model_copy()

    def get_referral_by_invitee(self, invitee_id: int) -> Optional[Referral]:
        referral = self._referrals.get(invitee_id)
        return referral.model_copy() if referral else None

    def save_referral(self, referral: Referral) -> Referral:
        self._referrals[referral.invitee_id] = referral.model_copy()
        return referral.model_copy()


class SqlAlchemyUserStore(UserStore):
    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = make_session_factory(engine)

    def insert(self, fields: dict) -> UserRecord:
        with self._session_factory() as db:
            row = UserRow(**fields)
            db.add(row)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise ConflictError()
            db.refresh(row)
            return UserRecord.model_validate(row)

    def get(self, user_id: int) -> Optional[UserRecord]:
        with self._session_factory() as db:
            row = db.get(UserRow, user_id)
            return UserRecord.model_validate(row) if row else None

    def get_by_username(self, username: str) -> Optional[UserRecord]:
        return self._first(select(UserRow).where(UserRow.username == username))

    def get_by_referral_code(self, code: str) -> Optional[UserRecord]:
        return self._first(select(UserRow).where(UserRow.referral_code == code))

    def _first(self, stmt) -> Optional[UserRecord]:
        with self._session_factory() as db:
            row = db.execute(stmt).scalar_one_or_none()
            return UserRecord.model_validate(row) if row else None

    def save(self, record: UserRecord) -> UserRecord:
        with self._session_factory() as db:
            row = db.get(UserRow, record.id)
            for key, value in record.model_dump(exclude={"id"}).items():
                setattr(row, key, value)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise ConflictError("Unique field already in use")
            db.refresh(row)
            return UserRecord.model_validate(row)

    def list_all(self) -> list[UserRecord]:
        with self._session_factory() as db:
            rows = db.execute(select(UserRow).order_by(UserRow.id)).scalars().all()
            return [UserRecord.model_validate(row) for row in rows]

    def append_event(self, event: LedgerEvent) -> LedgerEvent:
        with self._session_factory() as db:
            row = LedgerEventRow(**event.model_dump(exclude={"id"}))
            db.add(row)
            db.commit()
            db.refresh(row)
            return LedgerEvent.model_validate(row)

    def list_events(self, kind: Optional[str] = None) -> list[LedgerEvent]:
        stmt = select(LedgerEventRow).order_by(LedgerEventRow.id)
        if kind is not None:
            stmt = stmt.where(LedgerEventRow.kind == kind)
        with self._session_factory() as db:
            return [LedgerEvent.model_validate(row) for row in db.execute(stmt).scalars().all()]

    def insert_referral(self, referral: Referral) -> Referral:
        with self._session_factory() as db:
            row = ReferralRow(**referral.model_dump(exclude={"id"}))
            db.add(row)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise ConflictError("User was already referred")
            db.refresh(row)
            return Referral.model_validate(row)

    def get_referral_by_invitee(self, invitee_id: int) -> Optional[Referral]:
        with self._session_factory() as db:
            row = db.execute(
                select(ReferralRow).where(ReferralRow.invitee_id == invitee_id)
            ).scalar_one_or_none()
            return Referral.model_validate(row) if row else None

    def save_referral(self, referral: Referral) -> Referral:
        with self._session_factory() as db:
            row = db.get(ReferralRow, referral.id)
            for key, value in referral.model_dump(exclude={"id"}).items():
                setattr(row, key, value)
            db.commit()
            db.refresh(row)
            return Referral.model_validate(row)

    def close(self) -> None:
        self._engine.dispose()
