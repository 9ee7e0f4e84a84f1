"""Booking command audit trail service."""

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bookingcore.database import get_db_context
from bookingcore.models.admin import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Service for append-only audit logging of booking commands."""

    # Actions recorded by the command endpoints
    COMMAND_EXECUTED = "command_executed"
    COMMAND_UNDONE = "command_undone"
    HISTORY_CLEARED = "history_cleared"

    async def log_action(
        self,
        db: AsyncSession,
        action: str,
        resource_type: str,
        resource_id: str | None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        actor: str | None = None,
        correlation_id: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        """Add an audit row to the session (caller commits).

        Args:
            db: Database session
            action: Action name (e.g., "command_executed")
            resource_type: Resource type (e.g., "booking")
            resource_id: Resource ID
            old_values: Previous state
            new_values: New state
            actor: Who asked for the action, if known
            correlation_id: Request ID the action belongs to
            user_agent: Client user agent

        Returns:
            Created audit log entry
        """
        audit = AuditLog(
            actor=actor,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values=old_values,
            new_values=new_values,
            correlation_id=correlation_id,
            user_agent=user_agent,
        )
        db.add(audit)
        return audit

    async def log_command_action(
        self,
        action: str,
        booking_id: str | None,
        command_name: str | None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        actor: str | None = None,
        correlation_id: str | None = None,
        user_agent: str | None = None,
    ) -> bool:
        """Record a command action in its own transaction.

        The command itself is already committed, so a failed audit write is
        logged and reported as False rather than raised.
        """
        new_values = {"command": command_name, **(new_values or {})}
        try:
            async with get_db_context() as db:
                await self.log_action(
                    db,
                    action=action,
                    resource_type="booking",
                    resource_id=booking_id,
                    old_values=old_values,
                    new_values=new_values,
                    actor=actor,
                    correlation_id=correlation_id,
                    user_agent=user_agent,
                )
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"[{correlation_id or '-'}] Audit write failed for {action} on {booking_id}: {e}")
            return False
        return True


audit_service = AuditService()
