from __future__ import annotations

import copy
import re
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple

import pytest
from botocore.exceptions import ClientError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.core.tables import T  # noqa: E402

TABLE_NAMES = ("users", "content", "subscriptions", "follows", "transactions", "billing_events")

_IF_NOT_EXISTS = re.compile(r"if_not_exists\((#\w+),\s*(:\w+)\)\s*\+\s*(:\w+)")
_EQUALS = re.compile(r"(#\w+)\s*=\s*(:\w+)")
_BEGINS_WITH = re.compile(r"begins_with\((#\w+),\s*(:\w+)\)")
_NOT_EQUALS = re.compile(r"(#\w+)\s*<>\s*(:\w+)")


def _split_top_level(expr: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in expr:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    if current:
        parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


class FakeTable:
    """In-memory pk/sk table understanding the expressions app.services.store emits."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.items: Dict[Tuple[str, str], Dict[str, Any]] = {}

    def rows(self, **match: Any) -> List[Dict[str, Any]]:
        return [it for it in self.items.values() if all(it.get(k) == v for k, v in match.items())]

    def get_item(self, Key: Dict[str, str], **kwargs: Any) -> Dict[str, Any]:
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": copy.deepcopy(item)} if item else {}

    def put_item(self, Item: Dict[str, Any], ConditionExpression: Optional[str] = None, **kwargs: Any) -> Dict[str, Any]:
        key = (Item["pk"], Item["sk"])
        if ConditionExpression == "attribute_not_exists(pk)" and key in self.items:
            raise ClientError(
                {"Error": {"Code": "ConditionalCheckFailedException", "Message": "The conditional request failed"}},
                "PutItem",
            )
        self.items[key] = copy.deepcopy(Item)
        return {}

    def delete_item(self, Key: Dict[str, str], **kwargs: Any) -> Dict[str, Any]:
        self.items.pop((Key["pk"], Key["sk"]), None)
        return {}

    def update_item(
        self,
        Key: Dict[str, str],
        UpdateExpression: str,
        ExpressionAttributeValues: Dict[str, Any],
        ExpressionAttributeNames: Optional[Dict[str, str]] = None,
        ConditionExpression: Optional[str] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        names = ExpressionAttributeNames or {}
        if ConditionExpression:
            cond = _NOT_EQUALS.fullmatch(ConditionExpression.strip())
            assert cond, ConditionExpression
            existing = self.items.get((Key["pk"], Key["sk"]))
            field = names[cond.group(1)]
            if existing is None or field not in existing or existing[field] == ExpressionAttributeValues[cond.group(2)]:
                raise ClientError(
                    {"Error": {"Code": "ConditionalCheckFailedException", "Message": "The conditional request failed"}},
                    "UpdateItem",
                )
        item = self.items.setdefault((Key["pk"], Key["sk"]), {"pk": Key["pk"], "sk": Key["sk"]})
        assert UpdateExpression.startswith("SET ")
        for part in _split_top_level(UpdateExpression[len("SET "):]):
            lhs, rhs = (s.strip() for s in part.split("=", 1))
            field = names.get(lhs, lhs)
            counter = _IF_NOT_EXISTS.fullmatch(rhs)
            if counter:
                base = item.get(names[counter.group(1)], ExpressionAttributeValues[counter.group(2)])
                item[field] = base + ExpressionAttributeValues[counter.group(3)]
            else:
                item[field] = ExpressionAttributeValues[rhs]
        return {}

    def query(
        self,
        KeyConditionExpression: str,
        ExpressionAttributeNames: Dict[str, str],
        ExpressionAttributeValues: Dict[str, Any],
        IndexName: Optional[str] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        clauses = KeyConditionExpression.split(" AND ")
        eq = _EQUALS.fullmatch(clauses[0].strip())
        attr = ExpressionAttributeNames[eq.group(1)]
        wanted = ExpressionAttributeValues[eq.group(2)]

        prefix_attr = prefix = None
        if len(clauses) > 1:
            bw = _BEGINS_WITH.fullmatch(clauses[1].strip())
            prefix_attr = ExpressionAttributeNames[bw.group(1)]
            prefix = ExpressionAttributeValues[bw.group(2)]

        out = []
        for item in self.items.values():
            if item.get(attr) != wanted:
                continue
            if prefix is not None and not str(item.get(prefix_attr, "")).startswith(prefix):
                continue
            out.append(copy.deepcopy(item))
        out.sort(key=lambda it: it["sk"])
        return {"Items": out}


@pytest.fixture(autouse=True)
def fake_tables():
    originals = {name: getattr(T, name) for name in TABLE_NAMES}
    fakes = {name: FakeTable(name) for name in TABLE_NAMES}
    for name, fake in fakes.items():
        object.__setattr__(T, name, fake)
    yield SimpleNamespace(**fakes)
    for name, table in originals.items():
        object.__setattr__(T, name, table)

