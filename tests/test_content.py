"""
Tests for sports, articles and the audit log.
"""

import os
import tempfile
import pytest

# Set test mode BEFORE importing app modules
os.environ["TESTING"] = "1"

# Create temp file for test database BEFORE importing app modules
_test_db_fd, _test_db_path = tempfile.mkstemp(suffix=".db")
os.close(_test_db_fd)


@pytest.fixture(autouse=True)
def setup_db(monkeypatch):
    """Reset database before each test."""
    monkeypatch.setenv("DATABASE_PATH", _test_db_path)
    from database import reset_db
    reset_db()
    yield


@pytest.fixture(scope="session", autouse=True)
def cleanup_db():
    """Cleanup database file after all tests."""
    yield
    if os.path.exists(_test_db_path):
        os.remove(_test_db_path)


class TestSports:
    """Test sport upserts."""

    def test_save_matches_by_name_without_slug(self):
        from content import save_sport, list_sports
        first = save_sport({"name": "Rugby", "description": "Union"})
        second = save_sport({"name": "Rugby", "slug": None, "description": "League"})
        assert first == second
        assert list_sports() == [{"id": first, "name": "Rugby", "slug": None, "description": "League"}]

    def test_save_keeps_description_when_omitted(self):
        from content import save_sport, list_sports
        save_sport({"name": "Running", "slug": "running", "description": "Road"})
        save_sport({"name": "Running", "slug": "running"})
        assert list_sports()[0]["description"] == "Road"

    def test_sorted_case_insensitively(self):
        from content import save_sport, list_sports
        for name in ("cycling", "Archery", "Bowls"):
            save_sport({"name": name})
        assert [s["name"] for s in list_sports(include_description=False)] == ["Archery", "Bowls", "cycling"]


class TestArticles:
    """Test article storage."""

    def test_content_stored_verbatim(self):
        from content import create_article, get_article
        markdown = "# Title\n\n<b>raw</b> *text*"
        article = get_article(create_article("Guide", "running", markdown))
        assert article["content"] == markdown
        assert article["createdAt"] == article["updatedAt"]

    def test_update_bumps_updated_at(self):
        from content import create_article, update_article, get_article
        article_id = create_article("Guide", "running", "text")
        assert update_article(article_id, None, "new text", None) is True
        article = get_article(article_id)
        assert article["content"] == "new text"
        assert article["title"] == "Guide"
        assert article["updatedAt"] >= article["createdAt"]

    def test_update_missing(self):
        from content import update_article
        assert update_article(42, "x", None, None) is False

    def test_get_missing(self):
        from content import get_article
        assert get_article(42) is None


class TestAuditLog:
    """Test audit log recording and filtering."""

    def test_log_and_read(self):
        from audit import log_action, get_audit_logs
        log_action(actor="admin", action="override_upsert", target_type="clubs",
                   target_id="abc", details="name", ip_address="127.0.0.1")
        entries = get_audit_logs()
        assert len(entries) == 1
        entry = entries[0]
        assert entry["actor"] == "admin"
        assert entry["target_type"] == "clubs"
        assert entry["target_id"] == "abc"
        assert entry["ip_address"] == "127.0.0.1"

    def test_newest_first(self):
        from audit import log_action, get_audit_logs
        log_action(actor="ingest", action="ingest", target_type="events")
        log_action(actor="ingest", action="reset")
        assert [e["action"] for e in get_audit_logs()] == ["reset", "ingest"]

    def test_filters_and_count(self):
        from audit import log_action, get_audit_logs, get_audit_log_count
        log_action(actor="ingest", action="ingest", target_type="events")
        log_action(actor="ingest", action="ingest", target_type="games")
        log_action(actor="admin", action="article_create", target_type="article")
        assert get_audit_log_count() == 3
        assert get_audit_log_count(action="ingest") == 2
        assert len(get_audit_logs(target_type="games")) == 1

    def test_limit_offset(self):
        from audit import log_action, get_audit_logs
        for i in range(5):
            log_action(actor="admin", action="sport_save", target_id=str(i))
        page = get_audit_logs(limit=2, offset=1)
        assert [e["target_id"] for e in page] == ["3", "2"]
