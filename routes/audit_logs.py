from flask import Blueprint, jsonify, request
from models.audit_log import AuditLog
from security.rbac import require_roles
from utils.roles import ADMIN

audit_logs_bp = Blueprint("audit_logs", __name__, url_prefix="/admin")


@audit_logs_bp.get("/audit-logs")
@require_roles(ADMIN)
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    action = request.args.get("action")
    user_id = request.args.get("user_id", type=int)
    entity = request.args.get("entity")

    q = AuditLog.query
    if action:
        q = q.filter(AuditLog.action == action)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)
    if entity:
        q = q.filter(AuditLog.entity == entity)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([r.to_dict() for r in rows]), 200
