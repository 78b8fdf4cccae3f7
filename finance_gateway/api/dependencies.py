"""Dependency injection for FastAPI endpoints"""

import uuid
from datetime import date
from typing import Optional

from fastapi import Header, Request
from finance_gateway.domain.exceptions import UnauthorizedError, ValidationError
from finance_gateway.infrastructure.clients.ledger import LedgerClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_current_user_id(x_user_id: Optional[str] = Header(default=None, alias="X-User-ID")) -> str:
    """Owner id forwarded by the upstream authenticator"""
    if x_user_id is None or not x_user_id.strip():
        raise UnauthorizedError("Authentication required")
    return x_user_id.strip()


def get_today() -> date:
    """Single clock read per request; overridden in tests"""
    return date.today()


def get_ledger_client() -> LedgerClient:
    """Provide Ledger webhook client instance"""
    return LedgerClient()


def parse_id(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValidationError("id", "Invalid id format")
