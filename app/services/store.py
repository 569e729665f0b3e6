from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from botocore.exceptions import ClientError
from fastapi import HTTPException

from app.core.time import now_ts


def _ddb_error(exc: ClientError) -> HTTPException:
    return HTTPException(status_code=500, detail=f"DynamoDB error: {exc.response['Error'].get('Message', 'unknown')}")


def _is_conditional_failure(exc: ClientError) -> bool:
    return exc.response["Error"]["Code"] == "ConditionalCheckFailedException"


def ddb_get(table: Any, pk: str, sk: str) -> Optional[Dict[str, Any]]:
    try:
        resp = table.get_item(Key={"pk": pk, "sk": sk})
    except ClientError as exc:
        raise _ddb_error(exc) from exc
    return resp.get("Item")


def ddb_put(table: Any, item: Dict[str, Any], *, condition_expression: Optional[str] = None) -> None:
    kwargs: Dict[str, Any] = {"Item": item}
    if condition_expression:
        kwargs["ConditionExpression"] = condition_expression
    try:
        table.put_item(**kwargs)
    except ClientError as exc:
        if condition_expression and _is_conditional_failure(exc):
            raise
        raise _ddb_error(exc) from exc


def ddb_put_new(table: Any, item: Dict[str, Any]) -> bool:
    """Insert only if the key is free. False when the row already exists."""
    try:
        ddb_put(table, item, condition_expression="attribute_not_exists(pk)")
        return True
    except ClientError as exc:
        if _is_conditional_failure(exc):
            return False
        raise


def ddb_del(table: Any, pk: str, sk: str) -> None:
    try:
        table.delete_item(Key={"pk": pk, "sk": sk})
    except ClientError as exc:
        raise _ddb_error(exc) from exc


def _query_all(table: Any, **kwargs: Any) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    try:
        while True:
            resp = table.query(**kwargs)
            items.extend(resp.get("Items", []))
            last = resp.get("LastEvaluatedKey")
            if not last:
                return items
            kwargs["ExclusiveStartKey"] = last
    except ClientError as exc:
        raise _ddb_error(exc) from exc


def ddb_query_pk(table: Any, pk: str, prefix: Optional[str] = None) -> List[Dict[str, Any]]:
    names = {"#k": "pk"}
    values: Dict[str, Any] = {":k": pk}
    expr = "#k = :k"
    if prefix:
        names["#s"] = "sk"
        values[":p"] = prefix
        expr += " AND begins_with(#s, :p)"
    return _query_all(
        table,
        KeyConditionExpression=expr,
        ExpressionAttributeNames=names,
        ExpressionAttributeValues=values,
    )


def ddb_query_index(table: Any, index_name: str, attr: str, value: Any) -> List[Dict[str, Any]]:
    return _query_all(
        table,
        IndexName=index_name,
        KeyConditionExpression="#k = :k",
        ExpressionAttributeNames={"#k": attr},
        ExpressionAttributeValues={":k": value},
    )


def _set_clause(fields: Dict[str, Any]) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
    names: Dict[str, str] = {}
    values: Dict[str, Any] = {}
    sets = []
    for i, (key, value) in enumerate(fields.items(), start=1):
        names[f"#f{i}"] = key
        values[f":v{i}"] = value
        sets.append(f"#f{i} = :v{i}")
    return "SET " + ", ".join(sets), names, values


def ddb_set(table: Any, pk: str, sk: str, fields: Dict[str, Any]) -> None:
    if not fields:
        return
    expr, names, values = _set_clause(fields)
    try:
        table.update_item(
            Key={"pk": pk, "sk": sk},
            UpdateExpression=expr,
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )
    except ClientError as exc:
        raise _ddb_error(exc) from exc


def ddb_set_unless(table: Any, pk: str, sk: str, fields: Dict[str, Any], attr: str, current: Any) -> bool:
    """Set fields unless attr already equals current. False when another writer got there first."""
    expr, names, values = _set_clause(fields)
    names["#c"] = attr
    values[":c"] = current
    try:
        table.update_item(
            Key={"pk": pk, "sk": sk},
            UpdateExpression=expr,
            ConditionExpression="#c <> :c",
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )
        return True
    except ClientError as exc:
        if _is_conditional_failure(exc):
            return False
        raise _ddb_error(exc) from exc


def apply_counter_delta(table: Any, pk: str, sk: str, delta: Dict[str, int]) -> None:
    sets = []
    values: Dict[str, Any] = {":z": 0, ":t": now_ts()}
    names: Dict[str, str] = {}

    i = 0
    for key, value in delta.items():
        if value == 0:
            continue
        i += 1
        nk = f"#k{i}"
        dv = f":d{i}"
        names[nk] = key
        values[dv] = int(value)
        sets.append(f"{nk} = if_not_exists({nk}, :z) + {dv}")

    if not sets:
        return

    names["#u"] = "updated_at"
    sets.append("#u = :t")

    try:
        table.update_item(
            Key={"pk": pk, "sk": sk},
            UpdateExpression="SET " + ", ".join(sets),
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )
    except ClientError as exc:
        raise _ddb_error(exc) from exc
