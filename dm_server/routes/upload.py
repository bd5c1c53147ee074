"""Binary upload endpoints for media message content.

- POST /api/upload/<content_type> (multipart field ``file``) -> {ref, url}
- GET  /api/upload/<content_type>/<ref> -> the stored file
"""
import logging
import os

from flask import Blueprint, request, send_file, url_for

from dm_server.storage.blob_storage import get_blob_storage
from dm_server.utils.decorators import handle_errors, require_auth
from dm_server.utils.helpers import respond_success, respond_error

logger = logging.getLogger(__name__)

upload_bp = Blueprint('upload', __name__, url_prefix='/api/upload')


@upload_bp.route('/<content_type>', methods=['POST'])
@handle_errors
@require_auth
def upload_blob(content_type, auth_payload):
    upload = request.files.get('file')
    if upload is None:
        return respond_error('file is required', status=400)

    ref = get_blob_storage().save(content_type, upload.filename, upload.read())
    logger.info("Upload by %s: %s/%s", auth_payload['email'], content_type, ref)
    return respond_success({
        'ref': ref,
        'url': url_for('upload.get_blob', content_type=content_type, ref=ref)
    }, status=201)


@upload_bp.route('/<content_type>/<ref>', methods=['GET'])
@handle_errors
def get_blob(content_type, ref):
    path = get_blob_storage().path_for(content_type, ref)
    if path is None:
        return respond_error('Not found', status=404)
    return send_file(path, download_name=os.path.basename(path))
