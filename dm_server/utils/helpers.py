from datetime import datetime, timezone

from flask import jsonify


def respond_error(message_or_dict, status=400):
    """Return a standardized error response."""
    if isinstance(message_or_dict, dict):
        body = {'success': False, 'errors': message_or_dict}
    else:
        body = {'success': False, 'error': message_or_dict}
    return jsonify(body), status


def respond_success(payload=None, status=200):
    if payload is None:
        payload = {}
    body = {'success': True}
    if isinstance(payload, dict):
        body.update(payload)
    else:
        body['data'] = payload
    return jsonify(body), status


def parse_iso_or_epoch(s):
    """Parse ISO datetime or epoch (seconds or milliseconds) into aware UTC datetime or return None."""
    if s is None or s == '':
        return None
    if isinstance(s, datetime):
        return s if s.tzinfo else s.replace(tzinfo=timezone.utc)
    if isinstance(s, bool):
        return None
    if isinstance(s, (int, float)):
        value = float(s)
        # JavaScript clients send Date.now() in milliseconds
        if value > 1e11:
            value = value / 1000.0
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    s = str(s).strip()
    try:
        parsed = datetime.fromisoformat(s.replace('Z', '+00:00'))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    try:
        return parse_iso_or_epoch(float(s))
    except ValueError:
        return None


def normalize_doc(obj):
    """Recursively convert BSON types (ObjectId) and datetimes to JSON-serializable values.

    Returns a new object (does not mutate input).
    """
    from bson import ObjectId

    if obj is None:
        return None
    if isinstance(obj, dict):
        return {k: normalize_doc(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [normalize_doc(v) for v in obj]
    if isinstance(obj, ObjectId):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    return obj
