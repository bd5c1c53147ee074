"""dm_server: real-time direct-message delivery and presence server.

The application factory lives in server.py; blueprints are importable from
dm_server.routes.* without triggering the factory's side effects.
"""

__version__ = "1.0.0"
