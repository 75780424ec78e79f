"""Local HTTP daemon holding a persistent Figma connection."""

from figbridge.daemon.server import ClientHolder, create_daemon_app

__all__ = ["ClientHolder", "create_daemon_app"]
