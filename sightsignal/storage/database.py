"""SQLite WAL-mode repository for signals, sightings and their lookup tables."""

from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from pydantic import TypeAdapter

from sightsignal.models import (
    Geofence,
    GeofenceTarget,
    Polygon,
    ReputationRecord,
    Sighting,
    SightingType,
    Signal,
    SignalActivitySnapshot,
    SignalAnalytics,
    SignalConditions,
    SignalTarget,
    UserAccount,
    UserCategoryInteraction,
    UserPrivacySettings,
    UserSignalPreference,
)

_TARGET_ADAPTER: TypeAdapter = TypeAdapter(SignalTarget)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _utc_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class Database:
    """Thin SQLite wrapper with WAL mode and parameterised queries.

    The DB file is created with permissions 0600 (owner r/w only). Every
    upsert overwrites the row with the same primary key; writes commit
    immediately unless made inside transaction().
    """

    def __init__(self, path: str = "~/.sightsignal/catalog.db") -> None:
        self.path = str(Path(path).expanduser().resolve())
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = self._open()
        self._transaction_depth = 0
        self._migrate()

    # ------------------------------------------------------------------
    # Connection helpers
    # ------------------------------------------------------------------

    def _open(self) -> sqlite3.Connection:
        """Open connection; create file with 0600 perms if new."""
        is_new = not Path(self.path).exists()
        conn = sqlite3.connect(self.path, check_same_thread=False)
        if is_new:
            os.chmod(self.path, 0o600)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    def close(self) -> None:
        """Close the underlying connection."""
        if self._conn:
            self._conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """Group writes into one commit; roll all of them back on error.

        Nested calls join the outermost transaction.
        """
        self._transaction_depth += 1
        try:
            yield self
        except BaseException:
            self._transaction_depth -= 1
            if self._transaction_depth == 0:
                self._conn.rollback()
            raise
        self._transaction_depth -= 1
        if self._transaction_depth == 0:
            self._conn.commit()

    def _commit(self) -> None:
        """Commit unless a transaction() block is open."""
        if self._transaction_depth == 0:
            self._conn.commit()

    # ------------------------------------------------------------------
    # Schema migration
    # ------------------------------------------------------------------

    def _migrate(self) -> None:
        """Create tables if they do not yet exist."""
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS users (
                id              TEXT PRIMARY KEY,
                membership_tier TEXT NOT NULL DEFAULT 'free'
                                CHECK (membership_tier IN ('free','paid','admin')),
                created_at      TEXT NOT NULL DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS geofences (
                id          TEXT PRIMARY KEY,
                name        TEXT NOT NULL DEFAULT '',
                polygon     TEXT NOT NULL DEFAULT '{"points": []}',
                visibility  TEXT NOT NULL DEFAULT 'public'
                            CHECK (visibility IN ('public','private')),
                owner_id    TEXT,
                created_at  TEXT NOT NULL DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS sighting_types (
                id          TEXT PRIMARY KEY,
                label       TEXT NOT NULL DEFAULT '',
                category_id TEXT NOT NULL DEFAULT '',
                tags        TEXT NOT NULL DEFAULT '[]'
            );

            CREATE TABLE IF NOT EXISTS reputation (
                user_id     TEXT PRIMARY KEY,
                score       REAL    NOT NULL DEFAULT 0.0,
                is_verified INTEGER NOT NULL DEFAULT 0,
                updated_at  TEXT    NOT NULL DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS signals (
                id             TEXT PRIMARY KEY,
                name           TEXT    NOT NULL DEFAULT '',
                description    TEXT,
                owner_id       TEXT    NOT NULL DEFAULT '',
                target         TEXT    NOT NULL DEFAULT '{"kind": "global"}',
                geofence_id    TEXT,
                triggers       TEXT    NOT NULL DEFAULT '[]',
                conditions     TEXT    NOT NULL DEFAULT '{}',
                is_active      INTEGER NOT NULL DEFAULT 1,
                classification TEXT    NOT NULL DEFAULT 'personal',
                analytics      TEXT    NOT NULL DEFAULT '{}',
                updated_at     TEXT    NOT NULL DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS sightings (
                id            TEXT PRIMARY KEY,
                type_id       TEXT    NOT NULL,
                category_id   TEXT    NOT NULL,
                lat           REAL    NOT NULL,
                lng           REAL    NOT NULL,
                importance    TEXT    NOT NULL DEFAULT 'normal',
                score         REAL    NOT NULL DEFAULT 0.0,
                reporter_id   TEXT,
                description   TEXT    NOT NULL DEFAULT '',
                status        TEXT    NOT NULL DEFAULT 'active',
                upvotes       INTEGER NOT NULL DEFAULT 0,
                downvotes     INTEGER NOT NULL DEFAULT 0,
                confirmations INTEGER NOT NULL DEFAULT 0,
                disputes      INTEGER NOT NULL DEFAULT 0,
                created_at    TEXT    NOT NULL DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS privacy_settings (
                user_id                 TEXT PRIMARY KEY,
                enable_personalization  INTEGER NOT NULL DEFAULT 0,
                enable_view_tracking    INTEGER NOT NULL DEFAULT 0,
                enable_location_sharing INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS signal_preferences (
                user_id        TEXT    NOT NULL,
                signal_id      TEXT    NOT NULL,
                is_hidden      INTEGER NOT NULL DEFAULT 0,
                is_pinned      INTEGER NOT NULL DEFAULT 0,
                is_unimportant INTEGER NOT NULL DEFAULT 0,
                custom_rank    INTEGER,
                updated_at     TEXT    NOT NULL DEFAULT '',
                PRIMARY KEY (user_id, signal_id)
            );

            CREATE TABLE IF NOT EXISTS category_interactions (
                user_id            TEXT    NOT NULL,
                category_id        TEXT    NOT NULL,
                click_count        INTEGER NOT NULL DEFAULT 0,
                subscription_count INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (user_id, category_id)
            );

            CREATE TABLE IF NOT EXISTS activity_snapshots (
                signal_id       TEXT    NOT NULL,
                snapshot_date   TEXT    NOT NULL,
                view_count      INTEGER NOT NULL DEFAULT 0,
                new_subscribers INTEGER NOT NULL DEFAULT 0,
                new_sightings   INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (signal_id, snapshot_date)
            );

            CREATE INDEX IF NOT EXISTS idx_signals_active
                ON signals(is_active);
            CREATE INDEX IF NOT EXISTS idx_signals_owner
                ON signals(owner_id);
            CREATE INDEX IF NOT EXISTS idx_sightings_created_at
                ON sightings(created_at);
            CREATE INDEX IF NOT EXISTS idx_snapshots_date
                ON activity_snapshots(signal_id, snapshot_date);
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Users, geofences, taxonomy, reputation
    # ------------------------------------------------------------------

    def upsert_user(self, user: UserAccount) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO users (id, membership_tier, created_at) VALUES (?, ?, ?)",
            (user.id, user.membership_tier.value, _now_iso()),
        )
        self._commit()

    def get_user(self, user_id: str) -> Optional[UserAccount]:
        row = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return UserAccount(id=row["id"], membership_tier=row["membership_tier"])

    def upsert_geofence(self, geofence: Geofence) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO geofences (id, name, polygon, visibility, owner_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                geofence.id,
                geofence.name,
                geofence.polygon.model_dump_json(),
                geofence.visibility,
                geofence.owner_id,
                _now_iso(),
            ),
        )
        self._commit()

    def delete_geofence(self, geofence_id: str) -> bool:
        """Remove a geofence; signals referencing it stay and stop matching."""
        cur = self._conn.execute("DELETE FROM geofences WHERE id = ?", (geofence_id,))
        self._commit()
        return cur.rowcount > 0

    def get_geofence(self, geofence_id: str) -> Optional[Geofence]:
        row = self._conn.execute(
            "SELECT * FROM geofences WHERE id = ?", (geofence_id,)
        ).fetchone()
        return self._row_to_geofence(row) if row else None

    def list_geofences(self) -> List[Geofence]:
        rows = self._conn.execute("SELECT * FROM geofences ORDER BY id").fetchall()
        return [self._row_to_geofence(row) for row in rows]

    def upsert_sighting_type(self, sighting_type: SightingType) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO sighting_types (id, label, category_id, tags) VALUES (?, ?, ?, ?)",
            (
                sighting_type.id,
                sighting_type.label,
                sighting_type.category_id,
                json.dumps(sighting_type.tags),
            ),
        )
        self._commit()

    def list_sighting_types(self) -> List[SightingType]:
        rows = self._conn.execute("SELECT * FROM sighting_types ORDER BY id").fetchall()
        return [
            SightingType(
                id=row["id"],
                label=row["label"],
                category_id=row["category_id"],
                tags=json.loads(row["tags"] or "[]"),
            )
            for row in rows
        ]

    def upsert_reputation(self, record: ReputationRecord) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO reputation (user_id, score, is_verified, updated_at) VALUES (?, ?, ?, ?)",
            (record.user_id, record.score, int(record.is_verified), _now_iso()),
        )
        self._commit()

    def get_reputation(self, user_id: str) -> Optional[ReputationRecord]:
        row = self._conn.execute(
            "SELECT * FROM reputation WHERE user_id = ?", (user_id,)
        ).fetchone()
        return self._row_to_reputation(row) if row else None

    def list_reputation(self) -> List[ReputationRecord]:
        rows = self._conn.execute("SELECT * FROM reputation ORDER BY user_id").fetchall()
        return [self._row_to_reputation(row) for row in rows]

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def upsert_signal(self, signal: Signal) -> None:
        geofence_id = (
            signal.target.geofence_id if isinstance(signal.target, GeofenceTarget) else None
        )
        self._conn.execute(
            """
            INSERT OR REPLACE INTO signals (
                id, name, description, owner_id, target, geofence_id, triggers,
                conditions, is_active, classification, analytics, updated_at
            ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?)
            """,
            (
                signal.id,
                signal.name,
                signal.description,
                signal.owner_id,
                signal.target.model_dump_json(),
                geofence_id,
                json.dumps([t.value for t in signal.triggers]),
                signal.conditions.model_dump_json(exclude_none=True),
                int(signal.is_active),
                signal.classification.value,
                signal.analytics.model_dump_json(),
                _now_iso(),
            ),
        )
        self._commit()

    def get_signal(self, signal_id: str) -> Optional[Signal]:
        row = self._conn.execute("SELECT * FROM signals WHERE id = ?", (signal_id,)).fetchone()
        return self._row_to_signal(row) if row else None

    def list_signals(
        self,
        is_active: Optional[bool] = None,
        owner_id: Optional[str] = None,
        geofence_id: Optional[str] = None,
    ) -> List[Signal]:
        """Return signals in id order, optionally filtered."""
        clauses: List[str] = []
        params: List[object] = []
        if is_active is not None:
            clauses.append("is_active = ?")
            params.append(int(is_active))
        if owner_id is not None:
            clauses.append("owner_id = ?")
            params.append(owner_id)
        if geofence_id is not None:
            clauses.append("geofence_id = ?")
            params.append(geofence_id)

        sql = "SELECT * FROM signals"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY id"
        rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_signal(row) for row in rows]

    # ------------------------------------------------------------------
    # Sightings
    # ------------------------------------------------------------------

    def upsert_sighting(self, sighting: Sighting) -> None:
        self._conn.execute(
            """
            INSERT INTO sightings (
                id, type_id, category_id, lat, lng, importance, score, reporter_id,
                description, status, upvotes, downvotes, confirmations, disputes, created_at
            ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
            ON CONFLICT(id) DO UPDATE SET
                type_id       = excluded.type_id,
                category_id   = excluded.category_id,
                lat           = excluded.lat,
                lng           = excluded.lng,
                importance    = excluded.importance,
                score         = excluded.score,
                reporter_id   = excluded.reporter_id,
                description   = excluded.description,
                status        = excluded.status,
                upvotes       = excluded.upvotes,
                downvotes     = excluded.downvotes,
                confirmations = excluded.confirmations,
                disputes      = excluded.disputes
            """,
            (
                sighting.id,
                sighting.type_id,
                sighting.category_id,
                sighting.location.lat,
                sighting.location.lng,
                sighting.importance.value,
                sighting.score,
                sighting.reporter_id,
                sighting.description,
                sighting.status,
                sighting.upvotes,
                sighting.downvotes,
                sighting.confirmations,
                sighting.disputes,
                _now_iso(),
            ),
        )
        self._commit()

    def get_sighting(self, sighting_id: str) -> Optional[Sighting]:
        row = self._conn.execute(
            "SELECT * FROM sightings WHERE id = ?", (sighting_id,)
        ).fetchone()
        return self._row_to_sighting(row) if row else None

    def list_sightings(self, limit: int = 500) -> List[Sighting]:
        """Most recently created sightings first; re-upserts keep their position."""
        rows = self._conn.execute(
            "SELECT * FROM sightings ORDER BY created_at DESC, id LIMIT ?", (limit,)
        ).fetchall()
        return [self._row_to_sighting(row) for row in rows]

    # ------------------------------------------------------------------
    # Per-user ranking inputs
    # ------------------------------------------------------------------

    def upsert_privacy_settings(self, settings: UserPrivacySettings) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO privacy_settings (
                user_id, enable_personalization, enable_view_tracking, enable_location_sharing
            ) VALUES (?, ?, ?, ?)
            """,
            (
                settings.user_id,
                int(settings.enable_personalization),
                int(settings.enable_view_tracking),
                int(settings.enable_location_sharing),
            ),
        )
        self._commit()

    def get_privacy_settings(self, user_id: str) -> Optional[UserPrivacySettings]:
        row = self._conn.execute(
            "SELECT * FROM privacy_settings WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return UserPrivacySettings(
            user_id=row["user_id"],
            enable_personalization=bool(row["enable_personalization"]),
            enable_view_tracking=bool(row["enable_view_tracking"]),
            enable_location_sharing=bool(row["enable_location_sharing"]),
        )

    def upsert_signal_preference(self, preference: UserSignalPreference) -> None:
        self._conn.execute(
            """
            INSERT INTO signal_preferences (
                user_id, signal_id, is_hidden, is_pinned, is_unimportant, custom_rank, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, signal_id) DO UPDATE SET
                is_hidden      = excluded.is_hidden,
                is_pinned      = excluded.is_pinned,
                is_unimportant = excluded.is_unimportant,
                custom_rank    = excluded.custom_rank,
                updated_at     = excluded.updated_at
            """,
            (
                preference.user_id,
                preference.signal_id,
                int(preference.is_hidden),
                int(preference.is_pinned),
                int(preference.is_unimportant),
                preference.custom_rank,
                _now_iso(),
            ),
        )
        self._commit()

    def list_signal_preferences(self, user_id: str) -> List[UserSignalPreference]:
        """Preferences ordered by custom_rank (unranked last), then insertion."""
        rows = self._conn.execute(
            """
            SELECT * FROM signal_preferences
             WHERE user_id = ?
             ORDER BY custom_rank IS NULL, custom_rank, rowid
            """,
            (user_id,),
        ).fetchall()
        return [
            UserSignalPreference(
                user_id=row["user_id"],
                signal_id=row["signal_id"],
                is_hidden=bool(row["is_hidden"]),
                is_pinned=bool(row["is_pinned"]),
                is_unimportant=bool(row["is_unimportant"]),
                custom_rank=row["custom_rank"],
            )
            for row in rows
        ]

    def upsert_category_interaction(self, interaction: UserCategoryInteraction) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO category_interactions (
                user_id, category_id, click_count, subscription_count
            ) VALUES (?, ?, ?, ?)
            """,
            (
                interaction.user_id,
                interaction.category_id,
                interaction.click_count,
                interaction.subscription_count,
            ),
        )
        self._commit()

    def list_category_interactions(self, user_id: str) -> List[UserCategoryInteraction]:
        rows = self._conn.execute(
            "SELECT * FROM category_interactions WHERE user_id = ? ORDER BY category_id",
            (user_id,),
        ).fetchall()
        return [
            UserCategoryInteraction(
                user_id=row["user_id"],
                category_id=row["category_id"],
                click_count=row["click_count"],
                subscription_count=row["subscription_count"],
            )
            for row in rows
        ]

    def add_activity_snapshot(self, snapshot: SignalActivitySnapshot) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO activity_snapshots (
                signal_id, snapshot_date, view_count, new_subscribers, new_sightings
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                snapshot.signal_id,
                _utc_iso(snapshot.snapshot_date),
                snapshot.view_count,
                snapshot.new_subscribers,
                snapshot.new_sightings,
            ),
        )
        self._commit()

    def get_recent_snapshots(
        self, signal_id: str, days: int = 8, now: Optional[datetime] = None
    ) -> List[SignalActivitySnapshot]:
        """Snapshots for *signal_id* newer than now - *days*."""
        now = now or datetime.now(timezone.utc)
        cutoff = _utc_iso(now - timedelta(days=days))
        rows = self._conn.execute(
            """
            SELECT * FROM activity_snapshots
             WHERE signal_id = ?
               AND snapshot_date > ?
             ORDER BY snapshot_date
            """,
            (signal_id, cutoff),
        ).fetchall()
        return [
            SignalActivitySnapshot(
                signal_id=row["signal_id"],
                snapshot_date=datetime.fromisoformat(row["snapshot_date"]),
                view_count=row["view_count"],
                new_subscribers=row["new_subscribers"],
                new_sightings=row["new_sightings"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Return a dict with catalog row counts."""
        stats = {}
        for table in ("signals", "sightings", "geofences", "sighting_types", "users"):
            stats[f"{table}_count"] = self._conn.execute(
                f"SELECT COUNT(*) FROM {table}"
            ).fetchone()[0]
        stats["active_signals_count"] = self._conn.execute(
            "SELECT COUNT(*) FROM signals WHERE is_active = 1"
        ).fetchone()[0]
        return stats

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_geofence(row: sqlite3.Row) -> Geofence:
        return Geofence(
            id=row["id"],
            name=row["name"],
            polygon=Polygon.model_validate_json(row["polygon"]),
            visibility=row["visibility"],
            owner_id=row["owner_id"],
        )

    @staticmethod
    def _row_to_reputation(row: sqlite3.Row) -> ReputationRecord:
        return ReputationRecord(
            user_id=row["user_id"],
            score=float(row["score"] or 0.0),
            is_verified=bool(row["is_verified"]),
        )

    @staticmethod
    def _row_to_signal(row: sqlite3.Row) -> Signal:
        return Signal(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            owner_id=row["owner_id"],
            target=_TARGET_ADAPTER.validate_json(row["target"]),
            triggers=json.loads(row["triggers"] or "[]"),
            conditions=SignalConditions.model_validate_json(row["conditions"] or "{}"),
            is_active=bool(row["is_active"]),
            classification=row["classification"],
            analytics=SignalAnalytics.model_validate_json(row["analytics"] or "{}"),
        )

    @staticmethod
    def _row_to_sighting(row: sqlite3.Row) -> Sighting:
        return Sighting(
            id=row["id"],
            type_id=row["type_id"],
            category_id=row["category_id"],
            location={"lat": row["lat"], "lng": row["lng"]},
            importance=row["importance"],
            score=float(row["score"] or 0.0),
            reporter_id=row["reporter_id"],
            description=row["description"] or "",
            status=row["status"],
            upvotes=row["upvotes"],
            downvotes=row["downvotes"],
            confirmations=row["confirmations"],
            disputes=row["disputes"],
        )
