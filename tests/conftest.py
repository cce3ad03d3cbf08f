"""Shared pytest fixtures for the SightSignal test suite."""

from __future__ import annotations

import os
from datetime import datetime, timezone

import pytest

# Ensure no real env vars bleed in during tests
for _key in list(os.environ):
    if _key.startswith("SIGHTSIGNAL_"):
        del os.environ[_key]

# ─── Anti-Flake Guardrails ───

FROZEN_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

TULSA_BOX = [
    {"lat": 36.0, "lng": -96.1},
    {"lat": 36.0, "lng": -95.8},
    {"lat": 36.2, "lng": -95.8},
    {"lat": 36.2, "lng": -96.1},
]


@pytest.fixture()
def frozen_now() -> datetime:
    return FROZEN_TIME


@pytest.fixture()
def tmp_db(tmp_path):
    """Return a Database instance backed by a temporary file."""
    from sightsignal.storage.database import Database

    db_path = str(tmp_path / "test_catalog.db")
    db = Database(db_path)
    yield db
    db.close()


@pytest.fixture()
def mock_settings(tmp_path):
    """Return a Settings instance with safe test defaults."""
    from sightsignal.config import Settings

    return Settings(
        db_path=str(tmp_path / "test.db"),
        log_level="DEBUG",
    )


@pytest.fixture()
def tulsa_geofence():
    from sightsignal.models import Geofence

    return Geofence.model_validate(
        {"id": "geofence-tulsa", "name": "Tulsa", "polygon": {"points": TULSA_BOX}}
    )


@pytest.fixture()
def sighting_types():
    from sightsignal.models import SightingType

    return [
        SightingType(
            id="type-police",
            label="Police presence",
            category_id="cat-law-enforcement",
            tags=["police", "traffic"],
        ),
        SightingType(
            id="type-hail",
            label="Hail",
            category_id="cat-weather",
            tags=["storm"],
        ),
    ]


@pytest.fixture()
def eval_context(tulsa_geofence, sighting_types):
    """EvaluationContext with the Tulsa geofence, two types and three reporters."""
    from sightsignal.context import build_evaluation_context
    from sightsignal.models import ReputationRecord

    return build_evaluation_context(
        geofences=[tulsa_geofence],
        sighting_types=sighting_types,
        user_reputation=[
            ReputationRecord(user_id="user-trusted", score=75),
            ReputationRecord(user_id="user-new", score=12),
            ReputationRecord(user_id="user-admin", score=0, is_verified=True),
        ],
    )


@pytest.fixture()
def tulsa_sighting():
    """Law-enforcement sighting inside the Tulsa geofence."""
    from sightsignal.models import LatLng, Sighting

    return Sighting(
        id="sighting-1",
        type_id="type-police",
        category_id="cat-law-enforcement",
        location=LatLng(lat=36.1, lng=-95.9),
        score=9,
        reporter_id="user-trusted",
    )


@pytest.fixture()
def tulsa_signal():
    from sightsignal.models import GeofenceTarget, Signal, SignalConditions, TriggerType

    return Signal(
        id="signal-tulsa-police",
        name="Tulsa police",
        owner_id="user-owner",
        target=GeofenceTarget(geofence_id="geofence-tulsa"),
        triggers=[TriggerType.NEW_SIGHTING],
        conditions=SignalConditions(category_ids=["cat-law-enforcement"]),
    )


@pytest.fixture()
def seed_payload() -> dict:
    """A small seed document covering every importable section."""
    return {
        "users": [
            {"id": "viewer-1", "membership_tier": "paid"},
            {"id": "viewer-2"},
        ],
        "geofences": [
            {"id": "geofence-tulsa", "name": "Tulsa", "polygon": {"points": TULSA_BOX}},
        ],
        "sighting_types": [
            {
                "id": "type-police",
                "label": "Police presence",
                "category_id": "cat-law-enforcement",
                "tags": ["police"],
            },
            {"id": "type-hail", "label": "Hail", "category_id": "cat-weather", "tags": ["storm"]},
        ],
        "reputation": [{"user_id": "user-trusted", "score": 75}],
        "signals": [
            {
                "id": "sig-official",
                "name": "City alerts",
                "owner_id": "city",
                "classification": "official",
            },
            {
                "id": "sig-tulsa",
                "name": "Tulsa police",
                "owner_id": "user-owner",
                "classification": "community",
                "target": {"kind": "geofence", "geofence_id": "geofence-tulsa"},
                "conditions": {"category_ids": ["cat-law-enforcement"]},
                "analytics": {"view_count": 40, "subscriber_count": 3},
            },
            {
                "id": "sig-hail",
                "name": "Hail watch",
                "owner_id": "user-owner",
                "classification": "community",
                "triggers": ["new_sighting", "score_threshold"],
                "conditions": {"category_ids": ["cat-weather"], "min_score": 10},
                "analytics": {"view_count": 5},
            },
            {
                "id": "sig-paused",
                "name": "Paused",
                "owner_id": "user-owner",
                "is_active": False,
            },
        ],
        "sightings": [
            {
                "id": "sighting-police",
                "type_id": "type-police",
                "category_id": "cat-law-enforcement",
                "location": {"lat": 36.1, "lng": -95.9},
                "score": 9,
                "reporter_id": "user-trusted",
            },
            {
                "id": "sighting-hail",
                "type_id": "type-hail",
                "category_id": "cat-weather",
                "location": {"lat": 40.0, "lng": -100.0},
                "score": 12,
            },
        ],
        "privacy": [
            {
                "user_id": "viewer-1",
                "enable_personalization": True,
                "enable_location_sharing": True,
            }
        ],
        "preferences": [
            {"user_id": "viewer-1", "signal_id": "sig-hail", "is_pinned": True},
        ],
        "interactions": [
            {"user_id": "viewer-1", "category_id": "cat-law-enforcement", "click_count": 4},
        ],
        "snapshots": [],
    }
