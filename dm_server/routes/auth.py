"""Registration and login.

The token issued here carries the user's email as the messaging identity; it
is what the socket identify step and the history routes resolve.
"""
import logging

from flask import Blueprint, request

from dm_server.repository.user_repository import get_user_repository
from dm_server.security.authentication import AuthSecurity
from dm_server.utils.decorators import handle_errors
from dm_server.utils.helpers import respond_success, respond_error
from dm_server.utils.security import hash_password, verify_password
from dm_server.utils.validation import validate_register, validate_login

logger = logging.getLogger(__name__)

# Blueprint for auth routes
auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def _public_user(doc):
    return {
        'name': doc.get('name'),
        'email': doc.get('email'),
        'imageUrl': doc.get('image_url'),
    }


@auth_bp.route('/register', methods=['POST'])
@handle_errors
def register():
    data = request.get_json(silent=True) or {}
    is_valid, errors = validate_register(data)
    if not is_valid:
        logger.warning("Register validation failed: %s", errors)
        return respond_error(errors, status=400)

    email = data['email'].strip().lower()
    name = data['name'].strip()
    image_url = data.get('imageUrl') or data.get('image_url')

    repo = get_user_repository()
    if not repo.create_user(name, email, hash_password(data['password']), image_url):
        return respond_error('Email is already registered', status=409)

    logger.info("User registered: %s", email)
    token = AuthSecurity.create_access_token(email, name)
    return respond_success({
        'message': 'Registered successfully',
        'token': token,
        'user': {'name': name, 'email': email, 'imageUrl': image_url}
    }, status=201)


@auth_bp.route('/login', methods=['POST'])
@handle_errors
def login():
    data = request.get_json(silent=True) or {}
    is_valid, errors = validate_login(data)
    if not is_valid:
        return respond_error(errors, status=400)

    email = data['email'].strip().lower()
    user = get_user_repository().find_by_email(email)
    if not user or not verify_password(data['password'], user.get('password')):
        logger.warning("Login failed for %s", email)
        return respond_error('Invalid email or password', status=401)

    token = AuthSecurity.create_access_token(email, user.get('name'))
    return respond_success({'token': token, 'user': _public_user(user)})
