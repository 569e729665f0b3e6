from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .aws import ddb
from .settings import S

@dataclass(frozen=True)
class Tables:
    users: Any
    content: Any
    subscriptions: Any
    follows: Any
    transactions: Any
    billing_events: Any

T = Tables(
    users=ddb.Table(S.users_table_name),
    content=ddb.Table(S.content_table_name),
    subscriptions=ddb.Table(S.subscriptions_table_name),
    follows=ddb.Table(S.follows_table_name),
    transactions=ddb.Table(S.transactions_table_name),
    billing_events=ddb.Table(S.billing_events_table_name),
)
