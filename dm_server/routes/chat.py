"""Chat/Messaging REST API routes.

These endpoints are used ONLY for loading state. Sending, receipts,
indicators and presence changes all go through the WebSocket.

REST API Endpoints:
- GET /api/chat/users - Every registered user except the caller
- GET /api/chat/online - Current presence roster
- GET /api/chat/conversations/<counterpart>/messages - Conversation history
- GET /api/chat/conversations/<counterpart>/media?type=... - Media gallery
"""
import logging

from flask import Blueprint, current_app, request

from dm_server.messaging.models import ContentType
from dm_server.messaging.repository import get_message_repository
from dm_server.repository.user_repository import get_user_repository
from dm_server.utils.decorators import handle_errors, require_auth
from dm_server.utils.helpers import respond_success, normalize_doc, parse_iso_or_epoch

logger = logging.getLogger(__name__)

# Blueprint
chat_bp = Blueprint('chat', __name__, url_prefix='/api/chat')

MEDIA_GROUPS = {
    'audio': [ContentType.RECORDED_AUDIO, ContentType.UPLOADED_AUDIO],
    'video': [ContentType.RECORDED_VIDEO],
    'image': [ContentType.UPLOADED_IMAGE, ContentType.CAPTURED_IMAGE],
}


def _parse_media_types(raw):
    """'image' / 'audio,recorded_video' -> content types; defaults to every media type."""
    if not raw:
        return [t for t in ContentType if t.is_media]
    types = []
    for part in raw.split(','):
        part = part.strip().lower()
        if not part:
            continue
        if part in MEDIA_GROUPS:
            types.extend(MEDIA_GROUPS[part])
            continue
        content_type = ContentType.parse(part)
        if not content_type.is_media:
            raise ValueError('text is not a media type')
        types.append(content_type)
    return types


@chat_bp.route('/users', methods=['GET'])
@handle_errors
@require_auth
def list_users(auth_payload):
    users = get_user_repository().list_users(exclude=auth_payload['email'])
    result = [
        {'name': u.get('name'), 'email': u.get('email'), 'imageUrl': u.get('image_url')}
        for u in normalize_doc(users)
    ]
    return respond_success({'users': result, 'count': len(result)})


@chat_bp.route('/online', methods=['GET'])
@handle_errors
@require_auth
def list_online(auth_payload):
    return respond_success({'online': sorted(current_app.extensions['presence_registry'].list_identities())})


@chat_bp.route('/conversations/<counterpart>/messages', methods=['GET'])
@handle_errors
@require_auth
def conversation_messages(counterpart, auth_payload):
    """Messages between the caller and ``counterpart``, oldest first.

    Query Params:
        before: ISO date or epoch - only messages created earlier
        limit: int - newest N messages before the cursor (default: all)
    """
    me = auth_payload['email']
    before = parse_iso_or_epoch(request.args.get('before'))
    limit = int(request.args.get('limit', 0))
    if limit < 0:
        raise ValueError('limit must be >= 0')

    messages = get_message_repository().get_conversation_messages(me, counterpart, before=before, limit=limit)
    return respond_success({
        'messages': [m.to_dict() for m in messages],
        'count': len(messages)
    })


@chat_bp.route('/conversations/<counterpart>/media', methods=['GET'])
@handle_errors
@require_auth
def conversation_media(counterpart, auth_payload):
    """Media messages in the conversation, filtered by ``type`` (tag or audio/video/image)."""
    me = auth_payload['email']
    types = _parse_media_types(request.args.get('type'))
    messages = get_message_repository().get_media_messages(me, counterpart, types)
    return respond_success({
        'messages': [m.to_dict() for m in messages],
        'count': len(messages)
    })
