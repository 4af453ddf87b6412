"""
Audit logging for uploads and administrative actions.

Entries are single-line JSON objects written to a rotating log file, so the
log can be tailed or shipped without a parser. Falls back to the console when
the log file can't be opened.
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from api.errors import truncate_string
from config import (
    AUDIT_LOG_BACKUP_COUNT,
    AUDIT_LOG_ENABLED,
    AUDIT_LOG_LEVEL,
    AUDIT_LOG_MAX_BYTES,
    AUDIT_LOG_PATH,
    ERROR_DETAIL_MAX_LENGTH,
)

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    """Audit action types for categorization."""

    VIDEO_UPLOAD = "video_upload"
    VIDEO_UPDATE = "video_update"
    VIDEO_DELETE = "video_delete"


class AuditLogger:
    """Structured audit logger writing one JSON object per line."""

    def __init__(self, logger_name: str = "vidhost.audit"):
        self.logger = logging.getLogger(logger_name)
        self.logger.setLevel(getattr(logging, AUDIT_LOG_LEVEL, logging.INFO))
        self.logger.propagate = False

        if not self.logger.handlers:
            self._setup_handlers()

    def _setup_handlers(self):
        """Set up logging handlers with rotation support."""
        formatter = logging.Formatter("%(message)s")  # Raw JSON output

        if not AUDIT_LOG_ENABLED:
            self.logger.addHandler(logging.NullHandler())
            return

        try:
            AUDIT_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                AUDIT_LOG_PATH,
                maxBytes=AUDIT_LOG_MAX_BYTES,
                backupCount=AUDIT_LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Audit log file {AUDIT_LOG_PATH} unavailable ({e}), logging audit events to console")
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

    def log(
        self,
        action: AuditAction,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        user: Optional[str] = None,
        resource_id: Optional[Any] = None,
        resource_name: Optional[str] = None,
        details: Optional[dict] = None,
        success: bool = True,
        error: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        """
        Log an audit event.

        Args:
            action: The type of action being performed
            client_ip: IP address of the client making the request
            user_agent: User-Agent header from the request
            user: Authenticated admin username, if any
            resource_id: Video id
            resource_name: Object store key of the video
            details: Additional action-specific details
            success: Whether the action succeeded
            error: Error message if action failed
            request_id: Request id for correlating with application logs
        """
        if not AUDIT_LOG_ENABLED:
            return

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action.value,
            "success": success,
        }

        if request_id:
            entry["request_id"] = request_id
        if client_ip:
            entry["client_ip"] = client_ip
        if user_agent:
            entry["user_agent"] = truncate_string(user_agent, ERROR_DETAIL_MAX_LENGTH)
        if user:
            entry["user"] = user
        if resource_id is not None:
            entry["resource_type"] = "video"
            entry["resource_id"] = resource_id
        if resource_name:
            entry["resource_name"] = resource_name
        if details:
            entry["details"] = details
        if error:
            entry["error"] = truncate_string(error, ERROR_DETAIL_MAX_LENGTH)

        try:
            self.logger.info(json.dumps(entry, default=str))
        except (TypeError, ValueError, OSError) as e:
            # Audit failures must not fail the request they describe
            logger.error(f"Failed to write audit entry for {action.value}: {e}")


# Singleton instance for use across the application
audit_logger = AuditLogger()


def log_audit(action: AuditAction, **kwargs: Any):
    """
    Convenience function for logging audit events.

    Example usage:
        log_audit(
            AuditAction.VIDEO_DELETE,
            client_ip=get_real_ip(request),
            user=request.state.admin_user,
            resource_id=video_id,
            resource_name=filename,
            request_id=get_request_id(request),
        )
    """
    audit_logger.log(action=action, **kwargs)
