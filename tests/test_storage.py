"""Tests for the SQLite repository."""

from __future__ import annotations

import os
import stat
from datetime import timedelta

from sightsignal.models import (
    GeofenceTarget,
    LatLng,
    MembershipTier,
    Polygon,
    PolygonTarget,
    ReputationRecord,
    Sighting,
    Signal,
    SignalActivitySnapshot,
    SignalAnalytics,
    SignalClassification,
    SignalConditions,
    TriggerType,
    UserAccount,
    UserCategoryInteraction,
    UserPrivacySettings,
    UserSignalPreference,
)


def make_signal(signal_id: str = "sig", **overrides) -> Signal:
    defaults = dict(id=signal_id, name=signal_id, owner_id="owner")
    defaults.update(overrides)
    return Signal(**defaults)


class TestDatabaseInit:
    def test_creates_tables(self, tmp_db):
        tables = tmp_db._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ).fetchall()
        table_names = {row[0] for row in tables}
        assert {
            "users",
            "geofences",
            "sighting_types",
            "reputation",
            "signals",
            "sightings",
            "privacy_settings",
            "signal_preferences",
            "category_interactions",
            "activity_snapshots",
        } <= table_names

    def test_wal_mode_enabled(self, tmp_db):
        mode = tmp_db._conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode == "wal"

    def test_file_permissions(self, tmp_db):
        mode = stat.S_IMODE(os.stat(tmp_db.path).st_mode)
        assert mode == 0o600

    def test_context_manager(self, tmp_path):
        from sightsignal.storage.database import Database

        with Database(str(tmp_path / "cm.db")) as db:
            assert db.get_stats()["signals_count"] == 0


class TestSignals:
    def test_round_trip_polygon_signal(self, tmp_db):
        signal = make_signal(
            target=PolygonTarget(
                polygon=Polygon(
                    points=[LatLng(lat=0, lng=0), LatLng(lat=0, lng=1), LatLng(lat=1, lng=1)]
                )
            ),
            triggers=[TriggerType.NEW_SIGHTING, TriggerType.SCORE_THRESHOLD],
            conditions=SignalConditions(category_ids=["cat-a"], min_score=3),
            classification=SignalClassification.VERIFIED,
            analytics=SignalAnalytics(view_count=7, subscriber_count=2),
        )
        tmp_db.upsert_signal(signal)
        assert tmp_db.get_signal("sig") == signal

    def test_missing_signal(self, tmp_db):
        assert tmp_db.get_signal("nope") is None

    def test_upsert_replaces(self, tmp_db):
        tmp_db.upsert_signal(make_signal(name="old"))
        tmp_db.upsert_signal(make_signal(name="new"))
        assert tmp_db.get_signal("sig").name == "new"
        assert len(tmp_db.list_signals()) == 1

    def test_list_filters(self, tmp_db):
        tmp_db.upsert_signal(make_signal("a"))
        tmp_db.upsert_signal(make_signal("b", is_active=False))
        tmp_db.upsert_signal(make_signal("c", owner_id="someone"))
        tmp_db.upsert_signal(make_signal("d", target=GeofenceTarget(geofence_id="g1")))
        assert [s.id for s in tmp_db.list_signals()] == ["a", "b", "c", "d"]
        assert [s.id for s in tmp_db.list_signals(is_active=True)] == ["a", "c", "d"]
        assert [s.id for s in tmp_db.list_signals(owner_id="someone")] == ["c"]
        assert [s.id for s in tmp_db.list_signals(geofence_id="g1")] == ["d"]


class TestLookups:
    def test_geofence_round_trip_and_delete(self, tmp_db, tulsa_geofence):
        tmp_db.upsert_geofence(tulsa_geofence)
        assert tmp_db.get_geofence("geofence-tulsa") == tulsa_geofence
        assert tmp_db.delete_geofence("geofence-tulsa") is True
        assert tmp_db.delete_geofence("geofence-tulsa") is False
        assert tmp_db.list_geofences() == []

    def test_sighting_types(self, tmp_db, sighting_types):
        for sighting_type in sighting_types:
            tmp_db.upsert_sighting_type(sighting_type)
        stored = {t.id: t for t in tmp_db.list_sighting_types()}
        assert stored["type-police"].tags == ["police", "traffic"]

    def test_reputation(self, tmp_db):
        tmp_db.upsert_reputation(ReputationRecord(user_id="u", score=12.5, is_verified=True))
        record = tmp_db.get_reputation("u")
        assert record.score == 12.5
        assert record.is_verified is True
        assert [r.user_id for r in tmp_db.list_reputation()] == ["u"]

    def test_users(self, tmp_db):
        tmp_db.upsert_user(UserAccount(id="v", membership_tier=MembershipTier.ADMIN))
        assert tmp_db.get_user("v").membership_tier == MembershipTier.ADMIN
        assert tmp_db.get_user("ghost") is None


class TestSightings:
    def test_round_trip(self, tmp_db, tulsa_sighting):
        tmp_db.upsert_sighting(tulsa_sighting)
        assert tmp_db.get_sighting("sighting-1") == tulsa_sighting
        assert tmp_db.get_sighting("nope") is None

    def test_list_limit(self, tmp_db, tulsa_sighting):
        for i in range(3):
            tmp_db.upsert_sighting(tulsa_sighting.model_copy(update={"id": f"s{i}"}))
        assert len(tmp_db.list_sightings(limit=2)) == 2


class TestUserRows:
    def test_privacy(self, tmp_db):
        assert tmp_db.get_privacy_settings("u") is None
        tmp_db.upsert_privacy_settings(
            UserPrivacySettings(user_id="u", enable_location_sharing=True)
        )
        privacy = tmp_db.get_privacy_settings("u")
        assert privacy.enable_location_sharing is True
        assert privacy.enable_personalization is False

    def test_preferences_ordered_by_custom_rank(self, tmp_db):
        tmp_db.upsert_signal_preference(
            UserSignalPreference(user_id="u", signal_id="unranked", is_pinned=True)
        )
        tmp_db.upsert_signal_preference(
            UserSignalPreference(user_id="u", signal_id="second", is_pinned=True, custom_rank=2)
        )
        tmp_db.upsert_signal_preference(
            UserSignalPreference(user_id="u", signal_id="first", is_pinned=True, custom_rank=1)
        )
        tmp_db.upsert_signal_preference(
            UserSignalPreference(user_id="other", signal_id="x", is_hidden=True)
        )
        ids = [p.signal_id for p in tmp_db.list_signal_preferences("u")]
        assert ids == ["first", "second", "unranked"]

    def test_category_interactions(self, tmp_db):
        tmp_db.upsert_category_interaction(
            UserCategoryInteraction(user_id="u", category_id="c", click_count=3)
        )
        tmp_db.upsert_category_interaction(
            UserCategoryInteraction(user_id="u", category_id="c", click_count=5)
        )
        rows = tmp_db.list_category_interactions("u")
        assert len(rows) == 1
        assert rows[0].click_count == 5


class TestSnapshots:
    def test_recent_window(self, tmp_db, frozen_now):
        for days, views in ((0, 1), (3, 2), (10, 3)):
            tmp_db.add_activity_snapshot(
                SignalActivitySnapshot(
                    signal_id="sig",
                    snapshot_date=frozen_now - timedelta(days=days, hours=1),
                    view_count=views,
                )
            )
        recent = tmp_db.get_recent_snapshots("sig", days=8, now=frozen_now)
        assert sorted(s.view_count for s in recent) == [1, 2]
        assert tmp_db.get_recent_snapshots("other", now=frozen_now) == []

    def test_same_date_replaces(self, tmp_db, frozen_now):
        for views in (1, 9):
            tmp_db.add_activity_snapshot(
                SignalActivitySnapshot(signal_id="sig", snapshot_date=frozen_now, view_count=views)
            )
        recent = tmp_db.get_recent_snapshots("sig", now=frozen_now + timedelta(hours=1))
        assert [s.view_count for s in recent] == [9]


class TestStats:
    def test_counts(self, tmp_db, tulsa_sighting):
        tmp_db.upsert_signal(make_signal("a"))
        tmp_db.upsert_signal(make_signal("b", is_active=False))
        tmp_db.upsert_sighting(tulsa_sighting)
        stats = tmp_db.get_stats()
        assert stats["signals_count"] == 2
        assert stats["active_signals_count"] == 1
        assert stats["sightings_count"] == 1
        assert stats["geofences_count"] == 0


class TestTransaction:
    def test_commits_once_on_success(self, tmp_db):
        with tmp_db.transaction():
            tmp_db.upsert_signal(make_signal("a"))
            tmp_db.upsert_signal(make_signal("b"))
        assert len(tmp_db.list_signals()) == 2

    def test_rolls_back_every_write_on_error(self, tmp_db):
        tmp_db.upsert_signal(make_signal("kept"))
        try:
            with tmp_db.transaction():
                tmp_db.upsert_signal(make_signal("a"))
                tmp_db.upsert_user(UserAccount(id="u"))
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert [s.id for s in tmp_db.list_signals()] == ["kept"]
        assert tmp_db.get_user("u") is None

    def test_nested_block_joins_outer(self, tmp_db):
        try:
            with tmp_db.transaction():
                with tmp_db.transaction():
                    tmp_db.upsert_signal(make_signal("inner"))
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert tmp_db.list_signals() == []

    def test_writes_after_rollback_commit_again(self, tmp_db):
        try:
            with tmp_db.transaction():
                tmp_db.upsert_signal(make_signal("a"))
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        tmp_db.upsert_signal(make_signal("b"))
        assert [s.id for s in tmp_db.list_signals()] == ["b"]


class TestUpsertKeepsPosition:
    def test_re_saving_pinned_preference_keeps_order(self, tmp_db):
        for signal_id in ("a", "b", "c"):
            tmp_db.upsert_signal_preference(
                UserSignalPreference(user_id="u", signal_id=signal_id, is_pinned=True)
            )
        tmp_db.upsert_signal_preference(
            UserSignalPreference(user_id="u", signal_id="a", is_pinned=True, is_unimportant=True)
        )
        prefs = tmp_db.list_signal_preferences("u")
        assert [p.signal_id for p in prefs] == ["a", "b", "c"]
        assert prefs[0].is_unimportant is True

    def test_re_upserted_sighting_keeps_created_at(self, tmp_db, tulsa_sighting):
        tmp_db.upsert_sighting(tulsa_sighting)
        created = tmp_db._conn.execute(
            "SELECT created_at FROM sightings WHERE id = ?", (tulsa_sighting.id,)
        ).fetchone()[0]
        tmp_db.upsert_sighting(tulsa_sighting.model_copy(update={"score": 42}))
        row = tmp_db._conn.execute(
            "SELECT created_at, score FROM sightings WHERE id = ?", (tulsa_sighting.id,)
        ).fetchone()
        assert row["created_at"] == created
        assert row["score"] == 42

    def test_updated_sighting_keeps_recency_order(self, tmp_db, tulsa_sighting):
        tmp_db.upsert_sighting(tulsa_sighting.model_copy(update={"id": "older"}))
        tmp_db._conn.execute(
            "UPDATE sightings SET created_at = '2000-01-01T00:00:00+00:00' WHERE id = 'older'"
        )
        tmp_db._conn.commit()
        tmp_db.upsert_sighting(tulsa_sighting.model_copy(update={"id": "newer"}))
        tmp_db.upsert_sighting(tulsa_sighting.model_copy(update={"id": "older", "score": 99}))
        assert [s.id for s in tmp_db.list_sightings()] == ["newer", "older"]
