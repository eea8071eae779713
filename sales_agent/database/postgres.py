"""
Lightweight in-memory PostgresDB replacement for local development and tests.

Implements the same interface as sales_agent.database.postgres_real so the
system can run without a real database. It is NOT intended for production use.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class User:
    id: str
    external_id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: str = "customer"
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Conversation:
    id: str
    user_id: str
    history: List[Dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Message:
    id: str
    conversation_id: str
    sequence: int
    role: str
    content: str
    metadata: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.utcnow)


@dataclass
class InsuranceProduct:
    id: str
    type: str
    name: str
    is_active: bool = True
    keywords: List[str] = field(default_factory=list)
    required_inputs: List[Dict[str, Any]] = field(default_factory=list)
    pricing_rules: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Quote:
    id: str
    user_id: str
    product_id: str
    product_type: str
    product_name: str
    premium: float
    details: Dict[str, Any] = field(default_factory=dict)
    status: str = "draft"
    checkout_url: Optional[str] = None
    certificate_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


_QUOTE_FIELDS = {"checkout_url", "certificate_url", "paid_at", "details", "premium"}


class PostgresDB:
    """
    In-memory stand-in for the Postgres-backed data access layer.

    A single lock guards every mutation so multi-step writes (turn appends,
    conditional status transitions) behave like one transaction.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: Dict[str, User] = {}
        self._users_by_external_id: Dict[str, str] = {}
        self._conversations: Dict[str, Conversation] = {}
        self._conversations_by_user: Dict[str, str] = {}
        self._messages: List[Message] = []
        self._products: Dict[str, InsuranceProduct] = {}
        self._quotes: Dict[str, Quote] = {}

    # ------------------------------------------------------------------ #
    # Schema / lifecycle
    # ------------------------------------------------------------------ #
    def create_tables(self) -> None:
        """No-op for the in-memory implementation."""
        return None

    def ping(self) -> bool:
        return True

    # ------------------------------------------------------------------ #
    # Users
    # ------------------------------------------------------------------ #
    def get_or_create_user(self, external_id: str) -> User:
        with self._lock:
            user_id = self._users_by_external_id.get(external_id)
            if user_id:
                return self._users[user_id]
            user = User(id=str(uuid.uuid4()), external_id=external_id)
            self._users[user.id] = user
            self._users_by_external_id[external_id] = user.id
            return user

    def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        user_id = self._users_by_external_id.get(external_id)
        if not user_id:
            return None
        return self._users.get(user_id)

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        return self._users.get(str(user_id))

    def update_user_name(self, user_id: str, full_name: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(str(user_id))
            if not user:
                return None
            user.full_name = full_name
            user.updated_at = datetime.utcnow()
            return user

    # ------------------------------------------------------------------ #
    # Conversations & messages
    # ------------------------------------------------------------------ #
    def get_or_create_conversation(self, user_id: str) -> Conversation:
        with self._lock:
            conv_id = self._conversations_by_user.get(user_id)
            if conv_id:
                return self._conversations[conv_id]
            conv = Conversation(id=str(uuid.uuid4()), user_id=user_id)
            self._conversations[conv.id] = conv
            self._conversations_by_user[user_id] = conv.id
            return conv

    def get_conversation_by_user(self, user_id: str) -> Optional[Conversation]:
        conv_id = self._conversations_by_user.get(user_id)
        if not conv_id:
            return None
        return self._conversations.get(conv_id)

    def append_turns(self, conversation_id: str, turns: List[Dict[str, Any]]) -> Conversation:
        """Append serialized turns to the message log and the history projection together."""
        with self._lock:
            conv = self._conversations.get(conversation_id)
            if conv is None:
                raise KeyError(f"Conversation not found: {conversation_id}")
            sequence = len(conv.history)
            new_messages = []
            for offset, turn in enumerate(turns):
                new_messages.append(
                    Message(
                        id=str(uuid.uuid4()),
                        conversation_id=conversation_id,
                        sequence=sequence + offset,
                        role=turn.get("role", "user"),
                        content=turn.get("text") or "",
                        metadata={k: v for k, v in turn.items() if k in ("tool_call", "tool_result")},
                    )
                )
            self._messages.extend(new_messages)
            conv.history = conv.history + [dict(t) for t in turns]
            conv.updated_at = datetime.utcnow()
            return conv

    def get_messages(self, conversation_id: str) -> List[Message]:
        msgs = [m for m in self._messages if m.conversation_id == conversation_id]
        msgs.sort(key=lambda m: m.sequence)
        return msgs

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
        with self._lock:
            product = self._products.get(type)
            if product is None:
                product = InsuranceProduct(id=str(uuid.uuid4()), type=type, name=name)
                self._products[type] = product
            product.name = name
            product.is_active = is_active
            product.keywords = list(keywords or [])
            product.required_inputs = [dict(i) for i in required_inputs or []]
            product.pricing_rules = dict(pricing_rules or {})
            product.updated_at = datetime.utcnow()
            return product

    def get_product_by_type(self, product_type: str) -> Optional[InsuranceProduct]:
        return self._products.get(product_type)

    def list_active_products(self) -> List[InsuranceProduct]:
        return sorted((p for p in self._products.values() if p.is_active), key=lambda p: p.type)

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
        quote = Quote(
            id=str(uuid.uuid4()),
            user_id=user_id,
            product_id=product_id,
            product_type=product_type,
            product_name=product_name,
            premium=float(premium),
            details=dict(details or {}),
            status=status,
        )
        with self._lock:
            self._quotes[quote.id] = quote
        return quote

    def get_quote(self, quote_id: str) -> Optional[Quote]:
        return self._quotes.get(str(quote_id))

    def transition_quote_status(self, quote_id: str, from_status: str, to_status: str, **fields: Any) -> bool:
        """Compare-and-set on status. Returns False when the quote is not in `from_status`."""
        with self._lock:
            quote = self._quotes.get(str(quote_id))
            if quote is None or quote.status != from_status:
                return False
            quote.status = to_status
            for key, value in fields.items():
                if key in _QUOTE_FIELDS:
                    setattr(quote, key, value)
            quote.updated_at = datetime.utcnow()
            return True

    def update_quote(self, quote_id: str, **fields: Any) -> Optional[Quote]:
        with self._lock:
            quote = self._quotes.get(str(quote_id))
            if quote is None:
                return None
            for key, value in fields.items():
                if key not in _QUOTE_FIELDS:
                    raise ValueError(f"Quote field cannot be updated: {key}")
                setattr(quote, key, value)
            quote.updated_at = datetime.utcnow()
            return quote
