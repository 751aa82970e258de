import json
import logging

from flask import has_request_context, request
from models import db
from models.audit_log import AuditLog

logger = logging.getLogger("courtbook.audit")


def _client():
    if not has_request_context():
        return None, None
    ip = request.headers.get("X-Forwarded-For", request.remote_addr)
    user_agent = (request.headers.get("User-Agent") or "")[:255] or None
    return ip, user_agent


def log_event(action: str, user_id=None, entity=None, entity_id=None, metadata=None):
    """Persist an audit row and mirror it to the ``courtbook.audit`` logger.

    Commits the current session. Works outside a request (CLI, background
    discards), where ip and user agent are left empty.
    """
    ip, user_agent = _client()
    logger.info("%s user=%s %s=%s", action, user_id, entity or "-", entity_id if entity_id is not None else "-")

    row = AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=ip,
        user_agent=user_agent,
        metadata_json=json.dumps(metadata, default=str) if metadata else None,
    )
    db.session.add(row)
    db.session.commit()
