"""Sync endpoints mirroring a client's local store, one row per key."""
import json
import logging

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from lexibook.errors import ValidationError
from lexibook.server.database import current_user_id, db_ready_required, get_session
from lexibook.services.remote_store import RemoteStore
from lexibook.storage import decode_value

logger = logging.getLogger(__name__)

sync_bp = Blueprint("sync", __name__)


def _to_text(value) -> str:
    return json.dumps(value, ensure_ascii=False)


@sync_bp.post("/upload")
@jwt_required()
@db_ready_required
def upload():
    """Upsert every key of the posted snapshot in one transaction."""
    body = request.get_json(silent=True) or {}
    data = body.get("data")
    if not isinstance(data, dict):
        raise ValidationError("Invalid data format")

    user_id = current_user_id()
    count = RemoteStore(get_session()).upsert_many(
        user_id,
        {key: _to_text(value) for key, value in data.items()},
    )
    logger.info("Stored %d keys for user %d", count, user_id)
    return jsonify({"message": "Data synced successfully", "count": count})


@sync_bp.get("/download")
@jwt_required()
@db_ready_required
def download():
    """Every stored key of the user, values decoded back to JSON."""
    rows = RemoteStore(get_session()).get_all(current_user_id())
    data = {row["data_key"]: decode_value(row["data_value"]) for row in rows}
    return jsonify({"data": data, "count": len(rows)})


@sync_bp.post("/item")
@jwt_required()
@db_ready_required
def sync_item():
    """Upsert a single key."""
    body = request.get_json(silent=True) or {}
    key = body.get("key")
    if not isinstance(key, str) or not key:
        raise ValidationError("Data key is required")

    RemoteStore(get_session()).upsert(current_user_id(), key, _to_text(body.get("value")))
    return jsonify({"message": "Item synced successfully"})


@sync_bp.delete("/item/<path:key>")
@jwt_required()
@db_ready_required
def delete_item(key: str):
    """Delete a single key."""
    RemoteStore(get_session()).delete_by_key(current_user_id(), key)
    return jsonify({"message": "Item deleted successfully"})


@sync_bp.delete("/all")
@jwt_required()
@db_ready_required
def delete_all():
    """Delete every key of the user."""
    RemoteStore(get_session()).delete_all(current_user_id())
    return jsonify({"message": "All data cleared"})
