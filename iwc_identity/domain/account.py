from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    admin = "admin"
    client = "client"
    sales = "sales"
    finance = "finance"
    investor = "investor"
    partner = "partner"
    developer = "developer"


DEFAULT_ROLE = Role.client


@dataclass(slots=True)
class Account:
    """Aggregate root for a platform user and its approval state."""

    account_id: str
    full_name: str
    email: str
    password_hash: str
    role: Role
    approved: bool
    created_at: datetime
