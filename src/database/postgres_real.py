"""
Real SQL-backed DB for production when DATABASE_URL is set.
Implements the same interface as src.database.postgres (in-memory stub).

Duplicate detection and state transitions rely on the database itself:
- the unique index on insurance_requests.user_id rejects a second request
  for the same submitter;
- status changes are a single UPDATE ... WHERE status = <expected>, so two
  racing admin decisions cannot both succeed.
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import create_engine, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from src.database.models import AdminAction, Base, InsuranceRequest, utcnow
from src.insurance.errors import DuplicateRequestError, InvalidTransitionError, RequestNotFoundError
from src.insurance.states import RequestStatus

logger = logging.getLogger(__name__)

_REQUEST_COLUMNS = {c.key for c in InsuranceRequest.__table__.columns}
_IMMUTABLE_COLUMNS = {"id", "user_id", "created_at"}


def _normalize_connection_string(s: str) -> str:
    """Strip common mistakes: 'psql \'...\'', extra quotes, whitespace."""
    s = s.strip()
    if re.match(r"^psql\s+", s, re.IGNORECASE):
        s = re.sub(r"^psql\s+", "", s, flags=re.IGNORECASE).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1].strip()
    if s.startswith("postgres://"):
        s = "postgresql://" + s[len("postgres://"):]
    return s


def _engine_kwargs(connection_string: str) -> Dict[str, Any]:
    if connection_string.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


class PostgresDB:
    """
    SQL data access using SQLAlchemy. Use when DATABASE_URL is set.
    """

    def __init__(self, connection_string: str) -> None:
        connection_string = _normalize_connection_string(connection_string)
        self.engine = create_engine(connection_string, **_engine_kwargs(connection_string))
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def _session(self) -> Session:
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    # ------------------------------------------------------------------ #
    # Insurance requests
    # ------------------------------------------------------------------ #
    def insert_request(self, data: Dict[str, Any]) -> InsuranceRequest:
        values = {k: v for k, v in (data or {}).items() if k in _REQUEST_COLUMNS}
        values.setdefault("id", str(uuid4()))
        try:
            with self._session() as s:
                req = InsuranceRequest(**values)
                s.add(req)
                s.flush()
                s.refresh(req)
                return req
        except IntegrityError as e:
            existing = self.get_request_by_user_id(values.get("user_id", ""))
            if existing is None:
                raise
            logger.info("Duplicate request for user_id=%s rejected by unique index", existing.user_id)
            raise DuplicateRequestError(existing.user_id, request_id=existing.id, status=existing.status) from e

    def get_request(self, request_id: str) -> Optional[InsuranceRequest]:
        with self._session() as s:
            return s.get(InsuranceRequest, str(request_id))

    def get_request_by_user_id(self, user_id: str) -> Optional[InsuranceRequest]:
        with self._session() as s:
            stmt = select(InsuranceRequest).where(InsuranceRequest.user_id == str(user_id))
            return s.execute(stmt).scalar_one_or_none()

    def list_requests(
        self,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[InsuranceRequest], int]:
        with self._session() as s:
            stmt = select(InsuranceRequest)
            count_stmt = select(func.count()).select_from(InsuranceRequest)
            if status:
                stmt = stmt.where(InsuranceRequest.status == status)
                count_stmt = count_stmt.where(InsuranceRequest.status == status)
            stmt = stmt.order_by(InsuranceRequest.created_at.desc()).limit(limit).offset(offset)
            rows = list(s.execute(stmt).scalars().all())
            total = int(s.execute(count_stmt).scalar_one())
            return rows, total

    def list_pending(self) -> List[InsuranceRequest]:
        with self._session() as s:
            stmt = (
                select(InsuranceRequest)
                .where(InsuranceRequest.status == RequestStatus.PENDING_VERIFICATION.value)
                .order_by(InsuranceRequest.created_at.desc())
            )
            return list(s.execute(stmt).scalars().all())

    def transition(self, request_id: str, expected_status: str, updates: Dict[str, Any]) -> InsuranceRequest:
        """Apply `updates` only if the stored status still equals `expected_status`."""
        values = {k: v for k, v in (updates or {}).items() if k in _REQUEST_COLUMNS and k not in _IMMUTABLE_COLUMNS}
        values["updated_at"] = utcnow()
        with self._session() as s:
            stmt = (
                update(InsuranceRequest)
                .where(InsuranceRequest.id == str(request_id))
                .where(InsuranceRequest.status == expected_status)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            result = s.execute(stmt)
            if result.rowcount == 0:
                current = s.execute(
                    select(InsuranceRequest.status).where(InsuranceRequest.id == str(request_id))
                ).scalar_one_or_none()
                if current is None:
                    raise RequestNotFoundError(str(request_id))
                raise InvalidTransitionError(str(request_id), current)
            stmt = (
                select(InsuranceRequest)
                .where(InsuranceRequest.id == str(request_id))
                .execution_options(populate_existing=True)
            )
            return s.execute(stmt).scalar_one()

    def update_request(self, request_id: str, updates: Dict[str, Any]) -> Optional[InsuranceRequest]:
        """Non-status enrichment (e.g. attaching the invoice PDF URL)."""
        with self._session() as s:
            req = s.get(InsuranceRequest, str(request_id))
            if not req:
                return None
            for k, v in (updates or {}).items():
                if k in _REQUEST_COLUMNS and k not in _IMMUTABLE_COLUMNS and k != "status":
                    setattr(req, k, v)
            req.updated_at = utcnow()
            s.add(req)
            s.flush()
            s.refresh(req)
            return req

    def set_premium(self, request_id: str, premium_amount: Decimal) -> Optional[InsuranceRequest]:
        return self.update_request(request_id, {"premium_amount": premium_amount})

    def iter_all_requests(self) -> Iterator[InsuranceRequest]:
        with self._session() as s:
            rows = list(s.execute(select(InsuranceRequest).order_by(InsuranceRequest.created_at)).scalars().all())
        return iter(rows)

    # ------------------------------------------------------------------ #
    # Admin decision history
    # ------------------------------------------------------------------ #
    def add_admin_action(self, request_id: str, action: str, notes: Optional[str] = None) -> AdminAction:
        with self._session() as s:
            a = AdminAction(id=str(uuid4()), request_id=str(request_id), action=action, notes=notes)
            s.add(a)
            s.flush()
            s.refresh(a)
            return a

    def list_admin_actions(self, request_id: str) -> List[AdminAction]:
        with self._session() as s:
            stmt = (
                select(AdminAction)
                .where(AdminAction.request_id == str(request_id))
                .order_by(AdminAction.timestamp.desc())
            )
            return list(s.execute(stmt).scalars().all())
