"""Tests for audit logging functionality."""

import json
import uuid
from pathlib import Path
from unittest.mock import patch

import pytest


def _fresh_logger(log_path: Path, enabled: bool = True):
    """AuditLogger on its own logger name so handlers aren't shared between tests."""
    from api.audit import AuditLogger

    with patch("api.audit.AUDIT_LOG_ENABLED", enabled), patch("api.audit.AUDIT_LOG_PATH", log_path):
        return AuditLogger(logger_name=f"vidhost.audit.test.{uuid.uuid4().hex}")


def _read_entries(audit, log_path: Path):
    for handler in audit.logger.handlers:
        handler.flush()
    if not log_path.exists():
        return []
    return [json.loads(line) for line in log_path.read_text().splitlines() if line.strip()]


class TestAuditLogConfiguration:
    """Tests for audit log configuration options."""

    def test_audit_log_path_is_path_object(self):
        from config import AUDIT_LOG_PATH

        assert isinstance(AUDIT_LOG_PATH, Path)

    def test_audit_log_level_is_string(self):
        from config import AUDIT_LOG_LEVEL

        assert AUDIT_LOG_LEVEL in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class TestAuditAction:
    def test_audit_actions_exist(self):
        from api.audit import AuditAction

        assert AuditAction.VIDEO_UPLOAD.value == "video_upload"
        assert AuditAction.VIDEO_UPDATE.value == "video_update"
        assert AuditAction.VIDEO_DELETE.value == "video_delete"


class TestAuditLogger:
    """Tests for AuditLogger class."""

    def test_audit_logger_creates_json_entries(self, tmp_path):
        """Each event is one JSON object per line."""
        from api.audit import AuditAction

        log_path = tmp_path / "audit.log"
        audit = _fresh_logger(log_path)
        with patch("api.audit.AUDIT_LOG_ENABLED", True):
            audit.log(
                action=AuditAction.VIDEO_DELETE,
                client_ip="192.168.1.100",
                user_agent="Mozilla/5.0",
                user="admin",
                resource_id="abc123XYZ0",
                resource_name="videos/abc.mp4",
                details={"reason": "cleanup"},
                request_id="req-1",
            )

        entries = _read_entries(audit, log_path)
        assert len(entries) == 1
        entry = entries[0]
        assert entry["action"] == "video_delete"
        assert entry["client_ip"] == "192.168.1.100"
        assert entry["user_agent"] == "Mozilla/5.0"
        assert entry["user"] == "admin"
        assert entry["resource_type"] == "video"
        assert entry["resource_id"] == "abc123XYZ0"
        assert entry["resource_name"] == "videos/abc.mp4"
        assert entry["details"] == {"reason": "cleanup"}
        assert entry["request_id"] == "req-1"
        assert entry["success"] is True
        assert "timestamp" in entry

    def test_optional_fields_omitted(self, tmp_path):
        from api.audit import AuditAction

        log_path = tmp_path / "audit.log"
        audit = _fresh_logger(log_path)
        with patch("api.audit.AUDIT_LOG_ENABLED", True):
            audit.log(action=AuditAction.VIDEO_UPLOAD)

        entry = _read_entries(audit, log_path)[0]
        assert set(entry) == {"timestamp", "action", "success"}

    def test_audit_logger_truncates_long_errors(self, tmp_path):
        from api.audit import AuditAction
        from config import ERROR_DETAIL_MAX_LENGTH

        log_path = tmp_path / "audit.log"
        audit = _fresh_logger(log_path)
        with patch("api.audit.AUDIT_LOG_ENABLED", True):
            audit.log(action=AuditAction.VIDEO_UPLOAD, success=False, error="e" * 5000, user_agent="u" * 5000)

        entry = _read_entries(audit, log_path)[0]
        assert entry["success"] is False
        assert len(entry["error"]) == ERROR_DETAIL_MAX_LENGTH
        assert entry["error"].endswith("...")
        assert len(entry["user_agent"]) == ERROR_DETAIL_MAX_LENGTH

    def test_audit_logger_disabled_does_not_log(self, tmp_path):
        from api.audit import AuditAction

        log_path = tmp_path / "audit.log"
        audit = _fresh_logger(log_path, enabled=False)
        with patch("api.audit.AUDIT_LOG_ENABLED", False):
            audit.log(action=AuditAction.VIDEO_UPLOAD, client_ip="192.168.1.100")

        assert _read_entries(audit, log_path) == []

    def test_logger_falls_back_to_console(self, tmp_path):
        """An unusable log path falls back to a console handler."""
        import logging

        from api.audit import AuditAction

        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        audit = _fresh_logger(blocker / "audit.log")

        assert any(type(h) is logging.StreamHandler for h in audit.logger.handlers)
        with patch("api.audit.AUDIT_LOG_ENABLED", True):
            audit.log(action=AuditAction.VIDEO_UPLOAD)

    def test_write_failure_never_breaks_caller(self, tmp_path, caplog):
        from api.audit import AuditAction

        audit = _fresh_logger(tmp_path / "audit.log")
        with patch("api.audit.AUDIT_LOG_ENABLED", True), patch.object(
            audit.logger, "info", side_effect=OSError("disk full")
        ):
            audit.log(action=AuditAction.VIDEO_UPLOAD)

        assert "Failed to write audit entry" in caplog.text


class TestLogAuditFunction:
    def test_log_audit_delegates_to_singleton(self):
        from api.audit import AuditAction, log_audit

        with patch("api.audit.audit_logger.log") as mock_log:
            log_audit(AuditAction.VIDEO_UPDATE, resource_id="abc", user="admin")

        mock_log.assert_called_once_with(action=AuditAction.VIDEO_UPDATE, resource_id="abc", user="admin")


class TestAuditFromRoutes:
    """Routes write audit entries for uploads and admin changes."""

    @pytest.fixture
    def audit_calls(self):
        with patch("api.audit.audit_logger.log") as mock_log:
            yield mock_log

    def test_upload_is_audited(self, client, audit_calls):
        import io

        response = client.post("/upload", files={"video": ("a.mp4", io.BytesIO(b"data"), "video/mp4")})
        assert response.status_code == 200

        kwargs = audit_calls.call_args.kwargs
        assert kwargs["action"].value == "video_upload"
        assert kwargs["resource_id"] == response.json()["url"].rsplit("/", 1)[1]
        assert kwargs["request_id"] == response.headers["X-Request-ID"]

    async def test_delete_is_audited_with_user(self, client, sample_video, audit_calls):
        response = client.get(
            f"/admin/videos/{sample_video['id']}/delete",
            auth=("admin", "test-admin-password-12345"),
            follow_redirects=False,
        )
        assert response.status_code == 302

        kwargs = audit_calls.call_args.kwargs
        assert kwargs["action"].value == "video_delete"
        assert kwargs["user"] == "admin"
        assert kwargs["resource_id"] == sample_video["id"]
        assert kwargs["resource_name"] == sample_video["filename"]
