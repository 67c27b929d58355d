"""
Integration tests for the expiry sweep endpoints.
"""
import logging
from datetime import timedelta

from labrecord.core import config
from labrecord.core.logging_config import sanitize_log_data
from labrecord.db.models.document_record import DocumentRecord
from labrecord.services.record_store import RECORD_TTL, upsert_record, utcnow


def seed(db):
    """One expired and one live record."""
    upsert_record(db, "u1", "Expired", "Alice", "R100", [], now=utcnow() - RECORD_TTL - timedelta(minutes=1))
    upsert_record(db, "u1", "Live", "Alice", "R100", [])


def remaining_titles(db):
    db.expire_all()
    return sorted(record.course_title for record in db.query(DocumentRecord).all())


def test_cleanup_expired_get_and_post(client, db):
    seed(db)

    response = client.get("/cleanup-expired")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["deleted"] == 1
    assert remaining_titles(db) == ["Live"]

    response = client.post("/cleanup-expired")
    assert response.status_code == 200
    assert response.json()["deleted"] == 0


def test_cron_cleanup_requires_configured_secret(client, db, monkeypatch):
    """Test the scheduler endpoint refuses every call when no secret is configured."""
    monkeypatch.setattr(config, "CRON_SECRET", None)
    seed(db)

    response = client.get("/cron/cleanup", headers={"Authorization": "Bearer None"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Unauthorized"}
    assert remaining_titles(db) == ["Expired", "Live"]


def test_cron_cleanup_rejects_wrong_secret(client, db, monkeypatch):
    monkeypatch.setattr(config, "CRON_SECRET", "s3cret")

    assert client.get("/cron/cleanup").status_code == 401
    assert client.get("/cron/cleanup", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get("/cron/cleanup", headers={"Authorization": "s3cret"}).status_code == 401


def test_cron_cleanup_with_secret(client, db, monkeypatch):
    monkeypatch.setattr(config, "CRON_SECRET", "s3cret")
    seed(db)

    response = client.get("/cron/cleanup", headers={"Authorization": "Bearer s3cret"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["message"] == "Cleanup completed successfully"
    assert remaining_titles(db) == ["Live"]


def test_cleanup_reports_store_failure(client, monkeypatch):
    from labrecord.api.routes import maintenance
    from labrecord.core.errors import StoreUnavailable

    def broken_sweep(db):
        raise StoreUnavailable("could not connect to server")

    monkeypatch.setattr(maintenance, "sweep_expired", broken_sweep)
    response = client.post("/cleanup-expired")

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.json()["error"] == "Failed to clean up records"
    assert "could not connect" in response.json()["details"]


def test_cleanup_reports_partial_failure(client, monkeypatch):
    from labrecord.api.routes import maintenance
    from labrecord.core.errors import StoreUnavailable
    from labrecord.services.record_store import SweepResult

    monkeypatch.setattr(
        maintenance,
        "sweep_expired",
        lambda db: SweepResult(deleted=4, failed=1, first_error=StoreUnavailable("database is locked")),
    )
    response = client.get("/cleanup-expired")

    assert response.status_code == 500
    assert response.json()["deleted"] == 4
    assert response.json()["failed"] == 1


def test_rejected_cron_call_does_not_log_the_secret(client, monkeypatch, caplog):
    monkeypatch.setattr(config, "CRON_SECRET", "s3cret")

    with caplog.at_level(logging.WARNING, logger="labrecord.api.routes.maintenance"):
        response = client.get("/cron/cleanup", headers={"Authorization": "Bearer guessed-s3cret"})

    assert response.status_code == 401
    assert "Rejected cron cleanup call" in caplog.text
    assert "guessed-s3cret" not in caplog.text
    assert "***REDACTED***" in caplog.text


def test_sanitize_log_data_redacts_secrets():
    data = {"authorization": "Bearer abc", "CRON_SECRET": "x", "database_url": "postgresql://u:p@h/db", "client": "10.0.0.1"}

    sanitized = sanitize_log_data(data)

    assert sanitized == {
        "authorization": "***REDACTED***",
        "CRON_SECRET": "***REDACTED***",
        "database_url": "***REDACTED***",
        "client": "10.0.0.1",
    }
    assert data["authorization"] == "Bearer abc"
