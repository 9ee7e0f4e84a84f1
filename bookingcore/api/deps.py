"""API dependencies shared by the routers."""

from fastapi import Request

from bookingcore.commands.engine import CommandEngine


def get_command_engine(request: Request) -> CommandEngine:
    """The application's command engine (one per process)."""
    return request.app.state.command_engine


def get_request_id(request: Request) -> str | None:
    """Request ID assigned by RequestLoggingMiddleware."""
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")

