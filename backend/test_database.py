"""
Tests for the SQLite document stores.

Run with: pytest test_database.py -v
"""
import pytest


def event(event_id, city="Toronto", date="2026-11-01", **extra):
    return {"id": event_id, "name": f"Event {event_id}", "city": city, "date": date, "source": "test", **extra}


# =========================================================================
# TASTE PROFILES
# =========================================================================

class TestTasteProfiles:

    def test_save_and_get(self, temp_db):
        profile = {"genres": {"techno": 80}, "top_artists": [{"name": "Fisher"}]}
        assert temp_db.save_taste_profile("user1", profile)
        assert temp_db.get_taste_profile("user1") == profile

    def test_save_replaces(self, temp_db):
        temp_db.save_taste_profile("user1", {"genres": {"house": 10}})
        temp_db.save_taste_profile("user1", {"genres": {"trance": 90}}, source="demo")
        assert temp_db.get_taste_profile("user1") == {"genres": {"trance": 90}}

    def test_missing_profile(self, temp_db):
        assert temp_db.get_taste_profile("nobody") is None

    def test_delete(self, temp_db):
        temp_db.save_taste_profile("user1", {"genres": {}})
        assert temp_db.delete_taste_profile("user1")
        assert not temp_db.delete_taste_profile("user1")
        assert temp_db.get_taste_profile("user1") is None


# =========================================================================
# EVENTS
# =========================================================================

class TestEvents:

    def test_upsert_and_get_by_city(self, temp_db):
        written = temp_db.upsert_events([
            event("b", date="2026-12-01"),
            event("a", date="2026-11-01"),
            event("c", city="Chicago"),
        ])
        assert written == 3
        assert [e["id"] for e in temp_db.get_events("TORONTO")] == ["a", "b"]

    def test_upsert_refreshes(self, temp_db):
        temp_db.upsert_events([event("a", price="$20")])
        temp_db.upsert_events([event("a", price="$25")])
        assert temp_db.count_events() == 1
        assert temp_db.get_events("toronto")[0]["price"] == "$25"

    def test_events_without_id_are_skipped(self, temp_db):
        assert temp_db.upsert_events([{"name": "no id"}]) == 0

    def test_count_by_city(self, temp_db):
        temp_db.upsert_events([event("a"), event("b", city="Chicago")])
        assert temp_db.count_events("toronto") == 1
        assert temp_db.count_events() == 2


# =========================================================================
# SAVED EVENTS
# =========================================================================

class TestSavedEvents:

    def test_save_and_list(self, temp_db):
        assert temp_db.save_event("user1", event("a"), match_score=88)
        saved = temp_db.get_saved_events("user1")
        assert len(saved) == 1
        assert saved[0]["id"] == "a"
        assert saved[0]["match_score"] == 88
        assert saved[0]["saved_at"]

    def test_duplicate_save(self, temp_db):
        assert temp_db.save_event("user1", event("a"))
        assert not temp_db.save_event("user1", event("a"))
        # Another user can save the same event
        assert temp_db.save_event("user2", event("a"))

    def test_newest_first(self, temp_db):
        temp_db.save_event("user1", event("a"))
        temp_db.save_event("user1", event("b"))
        assert [e["id"] for e in temp_db.get_saved_events("user1")] == ["b", "a"]

    def test_remove(self, temp_db):
        temp_db.save_event("user1", event("a"))
        assert temp_db.is_saved("user1", "a")
        assert temp_db.remove_saved_event("user1", "a")
        assert not temp_db.is_saved("user1", "a")
        assert not temp_db.remove_saved_event("user1", "a")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
