from __future__ import annotations

import json
import logging
from typing import Any, Dict

from app.core.normalize import client_ip_from_request
from app.core.settings import S
from app.core.time import now_ts

logger = logging.getLogger("audit")


def audit_event(event: str, user_sub: str, request=None, **fields: Any) -> None:
    """One sorted JSON line per security or billing relevant action."""
    if not S.audit_log_enabled:
        return
    payload: Dict[str, Any] = {"event": event, "user_sub": user_sub, "ts": now_ts(), **fields}
    if request is not None:
        payload["ip"] = client_ip_from_request(request)
        payload["user_agent"] = (request.headers.get("user-agent", "")[:256])
    try:
        print(json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str))
    except (TypeError, ValueError):
        logger.warning("audit payload for %s not serializable", event)
