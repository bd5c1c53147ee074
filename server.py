import argparse
import logging
from typing import Optional

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from config import config
from dm_server.messaging.presence import PresenceRegistry
from dm_server.messaging.repository import reset_message_repository
from dm_server.messaging.service import set_messaging_service
from dm_server.repository.mongo_helper import MongoRepositorySingleton, ensure_indexes
from dm_server.repository.user_repository import reset_user_repository
from dm_server.routes.auth import auth_bp
from dm_server.routes.chat import chat_bp
from dm_server.routes.upload import upload_bp
from dm_server.security.authentication import AuthSecurity
from dm_server.storage.blob_storage import BlobStorage, set_blob_storage
from dm_server.websocket.hub import init_websocket_hub

logger = logging.getLogger(__name__)


def configure_logging():
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format=config.LOG_FORMAT,
        datefmt=config.LOG_DATE_FORMAT
    )


def configure_auth():
    """Configure AuthSecurity from config (JWT_SECRET, JWT_ALGORITHM, ACCESS_TOKEN_MINUTES)."""
    secret = config.JWT_SECRET
    if not secret:
        # Fail fast in production; dev and testing fall back to a fixed secret.
        raise RuntimeError('JWT_SECRET environment variable is required')
    AuthSecurity.configure(
        secret_key=secret,
        algorithm=config.JWT_ALGORITHM,
        access_token_expire_minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES,
    )


def create_app(db=None, registry: Optional[PresenceRegistry] = None, upload_dir: Optional[str] = None) -> Flask:
    """Application factory used by the runner and tests.

    Args:
        db: database handle to use instead of connecting to MONGO_URI
        registry: presence registry (a fresh one by default)
        upload_dir: blob storage root (UPLOAD_DIR by default)

    The Socket.IO server is available as ``app.extensions['socketio']``.
    """
    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = (config.MAX_UPLOAD_SIZE_MB + 1) * 1024 * 1024
    cors_origins = '*' if config.CORS_ORIGINS_LIST == ['*'] else config.CORS_ORIGINS_LIST
    CORS(app, origins=cors_origins)

    configure_auth()

    if db is not None:
        MongoRepositorySingleton.set_db(db)
    reset_message_repository()
    reset_user_repository()
    set_messaging_service(None)
    set_blob_storage(BlobStorage(root=upload_dir) if upload_dir else None)
    ensure_indexes(MongoRepositorySingleton.get_db())

    registry = registry or PresenceRegistry()
    app.extensions['presence_registry'] = registry

    socketio = SocketIO(app, async_mode=config.SOCKETIO_ASYNC_MODE, cors_allowed_origins=cors_origins)
    init_websocket_hub(app, socketio, registry)

    app.register_blueprint(auth_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(upload_bp)

    @app.route('/health')
    def health_check():
        return {'status': 'ok', 'online': len(registry.list_identities())}

    return app


def parse_args():
    """Parse simple CLI arguments for running the server."""
    parser = argparse.ArgumentParser(description='Run the direct-message relay server')
    parser.add_argument('--host', default='0.0.0.0', help='Interface to bind (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, default=config.PORT, help='TCP port to bind (default: 5000 or PORT env)')
    parser.add_argument('--debug', action='store_true', default=config.DEBUG, help='Run Flask in debug mode')
    return parser.parse_args()


def main():
    args = parse_args()
    configure_logging()
    config.validate_required()
    logger.debug("Config: %s", config.to_dict())
    app = create_app()
    socketio = app.extensions['socketio']
    logger.info('Starting %s with Socket.IO (%s) on port %s', config.APP_NAME, socketio.async_mode, args.port)
    socketio.run(
        app,
        host=args.host,
        port=args.port,
        debug=args.debug,
        allow_unsafe_werkzeug=not config.IS_PROD
    )


if __name__ == "__main__":
    main()
