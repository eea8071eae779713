"""
Real Postgres-backed DB for production when DATABASE_URL is set.
Implements the same interface as sales_agent.database.postgres (in-memory stub).
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import create_engine, func, select, update
from sqlalchemy.orm import Session, sessionmaker

from sales_agent.database.models import (
    Base,
    Conversation,
    InsuranceProduct,
    Message,
    Quote,
    User,
)

_QUOTE_FIELDS = {"checkout_url", "certificate_url", "paid_at", "details", "premium"}


def _normalize_connection_string(s: str) -> str:
    """Strip common mistakes: 'psql \'...\'', extra quotes, whitespace."""
    s = s.strip()
    if re.match(r"^psql\s+", s, re.IGNORECASE):
        s = re.sub(r"^psql\s+", "", s, flags=re.IGNORECASE).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1].strip()
    return s


def _conversation_for_update(conversation_id: str):
    """Row-locked read so concurrent appends number messages one after another."""
    return select(Conversation).where(Conversation.id == conversation_id).with_for_update()


class PostgresDB:
    """
    Postgres data access using SQLAlchemy. Use when DATABASE_URL is set.
    SQLite URLs are accepted for local runs and tests.
    """

    def __init__(self, connection_string: str) -> None:
        connection_string = _normalize_connection_string(connection_string)
        engine_kwargs: Dict[str, Any] = {"pool_pre_ping": True}
        if not connection_string.startswith("sqlite"):
            engine_kwargs.update(pool_size=5, max_overflow=10)
        self.engine = create_engine(connection_string, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def ping(self) -> bool:
        with self._session() as s:
            s.execute(select(1))
        return True

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
    # Users
    # ------------------------------------------------------------------ #
    def get_or_create_user(self, external_id: str) -> User:
        with self._session() as s:
            stmt = select(User).where(User.external_id == external_id)
            u = s.execute(stmt).scalar_one_or_none()
            if u:
                return u
            u = User(id=str(uuid4()), external_id=external_id, role="customer")
            s.add(u)
            s.flush()
            s.refresh(u)
            return u

    def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        with self._session() as s:
            stmt = select(User).where(User.external_id == external_id)
            return s.execute(stmt).scalar_one_or_none()

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        with self._session() as s:
            stmt = select(User).where(User.id == str(user_id))
            return s.execute(stmt).scalar_one_or_none()

    def update_user_name(self, user_id: str, full_name: str) -> Optional[User]:
        with self._session() as s:
            u = s.execute(select(User).where(User.id == str(user_id))).scalar_one_or_none()
            if not u:
                return None
            u.full_name = full_name
            u.updated_at = datetime.utcnow()
            s.flush()
            s.refresh(u)
            return u

    # ------------------------------------------------------------------ #
    # Conversations & messages
    # ------------------------------------------------------------------ #
    def get_or_create_conversation(self, user_id: str) -> Conversation:
        with self._session() as s:
            stmt = select(Conversation).where(Conversation.user_id == user_id)
            c = s.execute(stmt).scalar_one_or_none()
            if c:
                return c
            c = Conversation(id=str(uuid4()), user_id=user_id, history=[])
            s.add(c)
            s.flush()
            s.refresh(c)
            return c

    def get_conversation_by_user(self, user_id: str) -> Optional[Conversation]:
        with self._session() as s:
            stmt = select(Conversation).where(Conversation.user_id == user_id)
            return s.execute(stmt).scalar_one_or_none()

    def append_turns(self, conversation_id: str, turns: List[Dict[str, Any]]) -> Conversation:
        """Insert message rows and update the history projection in one transaction."""
        with self._session() as s:
            c = s.execute(_conversation_for_update(conversation_id)).scalar_one_or_none()
            if c is None:
                raise KeyError(f"Conversation not found: {conversation_id}")
            next_sequence = s.execute(
                select(func.count()).select_from(Message).where(Message.conversation_id == conversation_id)
            ).scalar_one()
            for offset, turn in enumerate(turns):
                s.add(
                    Message(
                        id=str(uuid4()),
                        conversation_id=conversation_id,
                        sequence=next_sequence + offset,
                        role=turn.get("role", "user"),
                        content=turn.get("text") or "",
                        message_metadata={k: v for k, v in turn.items() if k in ("tool_call", "tool_result")},
                    )
                )
            # New list so the JSON column is flagged dirty
            c.history = list(c.history or []) + [dict(t) for t in turns]
            c.updated_at = datetime.utcnow()
            s.flush()
            s.refresh(c)
            return c

    def get_messages(self, conversation_id: str) -> List[Message]:
        with self._session() as s:
            stmt = select(Message).where(Message.conversation_id == conversation_id).order_by(Message.sequence.asc())
            return list(s.execute(stmt).scalars().all())

    # ------------------------------------------------------------------ #
    # Products
    # ------------------------------------------------------------------ #
    def upsert_product(
        self,
        *,
        type: str,
        name: str,
        is_active: bool = True,
        keywords: Optional[List[str]] = None,
        required_inputs: Optional[List[Dict[str, Any]]] = None,
        pricing_rules: Optional[Dict[str, Any]] = None,
    ) -> InsuranceProduct:
        with self._session() as s:
            p = s.execute(select(InsuranceProduct).where(InsuranceProduct.type == type)).scalar_one_or_none()
            if p is None:
                p = InsuranceProduct(id=str(uuid4()), type=type, name=name)
                s.add(p)
            p.name = name
            p.is_active = is_active
            p.keywords = list(keywords or [])
            p.required_inputs = [dict(i) for i in required_inputs or []]
            p.pricing_rules = dict(pricing_rules or {})
            p.updated_at = datetime.utcnow()
            s.flush()
            s.refresh(p)
            return p

    def get_product_by_type(self, product_type: str) -> Optional[InsuranceProduct]:
        with self._session() as s:
            stmt = select(InsuranceProduct).where(InsuranceProduct.type == product_type)
            return s.execute(stmt).scalar_one_or_none()

    def list_active_products(self) -> List[InsuranceProduct]:
        with self._session() as s:
            stmt = select(InsuranceProduct).where(InsuranceProduct.is_active.is_(True)).order_by(InsuranceProduct.type)
            return list(s.execute(stmt).scalars().all())

    # ------------------------------------------------------------------ #
    # Quotes
    # ------------------------------------------------------------------ #
    def create_quote(
        self,
        *,
        user_id: str,
        product_id: str,
        product_type: str,
        product_name: str,
        premium: Any,
        details: Optional[Dict[str, Any]] = None,
        status: str = "quoted",
    ) -> Quote:
        with self._session() as s:
            q = Quote(
                id=str(uuid4()),
                user_id=user_id,
                product_id=product_id,
                product_type=product_type,
                product_name=product_name,
                premium=float(premium),
                details=dict(details or {}),
                status=status,
            )
            s.add(q)
            s.flush()
            s.refresh(q)
            return q

    def get_quote(self, quote_id: str) -> Optional[Quote]:
        with self._session() as s:
            stmt = select(Quote).where(Quote.id == str(quote_id))
            return s.execute(stmt).scalar_one_or_none()

    def transition_quote_status(self, quote_id: str, from_status: str, to_status: str, **fields: Any) -> bool:
        """
        Single conditional UPDATE ... WHERE status = from_status.

        Returns True only for the caller whose update matched the row.
        """
        values: Dict[str, Any] = {k: v for k, v in fields.items() if k in _QUOTE_FIELDS}
        values.update(status=to_status, updated_at=datetime.utcnow())
        with self._session() as s:
            stmt = (
                update(Quote)
                .where(Quote.id == str(quote_id), Quote.status == from_status)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            result = s.execute(stmt)
            return result.rowcount == 1

    def update_quote(self, quote_id: str, **fields: Any) -> Optional[Quote]:
        with self._session() as s:
            q = s.execute(select(Quote).where(Quote.id == str(quote_id))).scalar_one_or_none()
            if not q:
                return None
            for k, v in fields.items():
                if k not in _QUOTE_FIELDS:
                    raise ValueError(f"Quote field cannot be updated: {k}")
                setattr(q, k, v)
            q.updated_at = datetime.utcnow()
            s.flush()
            s.refresh(q)
            return q
