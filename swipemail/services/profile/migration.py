"""
Schema migration for persisted profile records.

Migrations are pure functions over the raw JSON record. They run once at load
time and never touch the filesystem themselves.
"""

from typing import Any

from swipemail.core.constants import LEGACY_PROFILE_VERSION, PROFILE_VERSION


def needs_migration(record: dict[str, Any]) -> bool:
    return record.get("version", LEGACY_PROFILE_VERSION) == LEGACY_PROFILE_VERSION


def migrate_v1_record(record: dict[str, Any]) -> dict[str, Any]:
    """
    Rewrite a "1.0" record into the "2.0" shape.

    Legacy counters are named right/left; totals and vocabulary did not exist
    and are derived from the migrated counters. Records already at "2.0" are
    returned unchanged. Raises ValueError when the legacy shape is malformed.
    """
    if not needs_migration(record):
        return record

    legacy = record.get("preferences") or {}
    if not isinstance(legacy, dict):
        raise ValueError("preferences must be an object")

    preferences: dict[str, dict[str, int]] = {}
    for tag, counters in legacy.items():
        counters = counters or {}
        if not isinstance(counters, dict):
            raise ValueError(f"counters for tag {tag!r} must be an object")
        preferences[tag] = {
            "good": int(counters.get("good", counters.get("right", 0)) or 0),
            "bad": int(counters.get("bad", counters.get("left", 0)) or 0),
        }

    migrated = dict(record)
    migrated["preferences"] = preferences
    migrated["totalGood"] = sum(c["good"] for c in preferences.values())
    migrated["totalBad"] = sum(c["bad"] for c in preferences.values())
    migrated["vocabulary"] = sorted(preferences)
    migrated["emailsProcessed"] = int(record.get("emailsProcessed") or 0)
    migrated["version"] = PROFILE_VERSION
    return migrated
