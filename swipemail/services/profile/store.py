import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from swipemail.core.config import settings
from swipemail.models.outcome import Degradation, Outcome
from swipemail.models.profile import Profile
from swipemail.services.profile.lock import ProfileLock, ProfileLockTimeout
from swipemail.services.profile.migration import migrate_v1_record, needs_migration
from swipemail.shared.ids import profile_key, redact_user_id


class ProfileStore:
    """
    File-backed store holding one JSON record per user.

    Reads are lock-free and may observe a slightly stale record. Writes take
    the per-user ProfileLock, go to a temporary file in the same directory and
    are renamed over the canonical record, so readers never see a partial file.
    """

    RECORD_SUFFIX = "_preferences.json"
    LOCK_SUFFIX = "_preferences.lock"

    def __init__(
        self,
        profiles_dir: str | Path | None = None,
        lock_attempts: int | None = None,
        lock_interval: float | None = None,
        lock_stale_after: float | None = None,
    ):
        self.profiles_dir = Path(profiles_dir or settings.PROFILES_DIR)
        self.lock_attempts = lock_attempts
        self.lock_interval = lock_interval
        self.lock_stale_after = lock_stale_after
        try:
            self.profiles_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error(f"Failed to create profiles directory {self.profiles_dir}: {exc}")

    def record_path(self, user_id: str) -> Path:
        return self.profiles_dir / f"{profile_key(user_id)}{self.RECORD_SUFFIX}"

    def lock_path(self, user_id: str) -> Path:
        return self.profiles_dir / f"{profile_key(user_id)}{self.LOCK_SUFFIX}"

    def lock(self, user_id: str) -> ProfileLock:
        return ProfileLock(
            self.lock_path(user_id),
            attempts=self.lock_attempts,
            interval=self.lock_interval,
            stale_after=self.lock_stale_after,
        )

    # Reads

    def read(self, user_id: str) -> Outcome[Profile]:
        """
        Read and, if needed, migrate a record in memory without persisting it.

        Missing and unreadable records both yield an empty profile; the
        outcome's reason tells them apart.
        """
        profile, reason, _ = self._read(user_id)
        return Outcome(value=profile, reason=reason)

    def fetch(self, user_id: str) -> Outcome[Profile]:
        """Read a profile, persisting it immediately if it was migrated."""
        profile, reason, migrated = self._read(user_id)
        if migrated:
            logger.info(f"[{redact_user_id(user_id)}] Migrated profile to version {profile.version}")
            if not self.save(profile):
                logger.error(
                    f"[{redact_user_id(user_id)}] Migrated profile could not be persisted; "
                    "serving the in-memory copy"
                )
        return Outcome(value=profile, reason=reason)

    def load(self, user_id: str) -> Profile:
        return self.fetch(user_id).value

    def _read(self, user_id: str) -> tuple[Profile, Degradation | None, bool]:
        path = self.record_path(user_id)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return Profile.empty(user_id), Degradation.NOT_FOUND, False
        except OSError as exc:
            logger.warning(f"[{redact_user_id(user_id)}] Unable to read profile {path.name}: {exc}")
            return Profile.empty(user_id), Degradation.CORRUPT_RECORD, False

        try:
            record = json.loads(raw.decode("utf-8"))
            if not isinstance(record, dict):
                raise ValueError("profile record is not a JSON object")
            migrated = needs_migration(record)
            record = migrate_v1_record(record)
            record["userId"] = user_id
            profile = Profile.model_validate(record)
        except (ValueError, TypeError) as exc:
            logger.warning(f"[{redact_user_id(user_id)}] Corrupt profile {path.name}, starting fresh: {exc}")
            return Profile.empty(user_id), Degradation.CORRUPT_RECORD, False

        return profile, None, migrated

    # Writes

    def save(self, profile: Profile) -> bool:
        """Persist a profile under its lock. Returns False on any failure."""
        try:
            with self.lock(profile.user_id):
                return self.commit(profile)
        except (ProfileLockTimeout, OSError) as exc:
            logger.error(f"[{redact_user_id(profile.user_id)}] Profile not saved: {exc}")
            return False

    def commit(self, profile: Profile) -> bool:
        """
        Atomically replace the canonical record. The caller must hold the lock.

        `last_updated` is only advanced once the rename succeeded.
        """
        written_at = datetime.now(timezone.utc)
        record = profile.model_copy(update={"last_updated": written_at}).to_record()
        payload = json.dumps(record, indent=2, ensure_ascii=False) + "\n"

        target = self.record_path(profile.user_id)
        tmp_path: Path | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.profiles_dir,
                prefix=f"{profile_key(profile.user_id)}_preferences.",
                suffix=".tmp",
            )
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, target)
        except OSError as exc:
            logger.error(f"[{redact_user_id(profile.user_id)}] Failed to write profile {target.name}: {exc}")
            if tmp_path is not None:
                try:
                    tmp_path.unlink(missing_ok=True)
                except OSError as cleanup_exc:
                    logger.warning(f"Could not remove temporary file {tmp_path.name}: {cleanup_exc}")
            return False

        profile.last_updated = written_at
        return True

    def reset(self, user_id: str) -> bool:
        """Replace the record with a fresh empty profile."""
        success = self.save(Profile.empty(user_id))
        if success:
            logger.info(f"[{redact_user_id(user_id)}] Profile reset")
        else:
            logger.error(f"[{redact_user_id(user_id)}] Profile reset failed")
        return success
