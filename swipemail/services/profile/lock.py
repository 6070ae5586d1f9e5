import os
import time
import uuid
from pathlib import Path

from loguru import logger

from swipemail.core.config import settings


class ProfileLockTimeout(Exception):
    """Raised when the lock marker could not be created within the retry budget."""


class ProfileLock:
    """
    Advisory, file-scoped lock guarding writes to one profile record.

    Acquisition atomically creates a marker file (O_CREAT | O_EXCL). If the
    marker exists the caller sleeps a fixed interval and retries, up to a
    bounded number of attempts. Each marker carries a unique token that is
    re-checked before any removal. The holder removes it on exit, even when
    the guarded block raises.
    """

    def __init__(
        self,
        path: Path,
        attempts: int | None = None,
        interval: float | None = None,
        stale_after: float | None = None,
    ):
        self.path = Path(path)
        self.attempts = attempts if attempts is not None else settings.PROFILE_LOCK_ATTEMPTS
        self.interval = interval if interval is not None else settings.PROFILE_LOCK_INTERVAL_SECONDS
        self.stale_after = stale_after if stale_after is not None else settings.PROFILE_LOCK_STALE_SECONDS
        self._held = False
        self._token: str | None = None

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        token = f"{os.getpid()}:{uuid.uuid4().hex}"
        for attempt in range(1, self.attempts + 1):
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if self._break_if_stale():
                    continue
                logger.debug(f"Lock busy at {self.path.name} (attempt {attempt}/{self.attempts})")
                if attempt < self.attempts:
                    time.sleep(self.interval)
                continue
            try:
                os.write(fd, token.encode("ascii"))
            finally:
                os.close(fd)
            self._token = token
            self._held = True
            return

        raise ProfileLockTimeout(f"Could not lock {self.path.name} after {self.attempts} attempts")

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        token, self._token = self._token, None
        if not self._remove_if_token(token):
            logger.warning(f"Lock marker {self.path.name} was no longer ours at release")

    def _break_if_stale(self) -> bool:
        """Remove a marker left behind by a writer that never released it."""
        if self.stale_after <= 0:
            return False
        # Token first: a marker replaced after this read has a fresh mtime.
        token = self._read_token(self.path)
        if token is None:
            return True
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            # Released between our create attempt and the stat; retry immediately.
            return True
        if age < self.stale_after:
            return False
        logger.warning(f"Breaking stale lock {self.path.name} (age {age:.1f}s)")
        self._remove_if_token(token)
        return True

    def _remove_if_token(self, token: str | None) -> bool:
        """
        Remove the marker only if it still carries `token`.

        The marker is first renamed aside so the check and the removal act on
        the same file. A marker that turns out to belong to another writer is
        linked back into place.
        """
        aside = self.path.with_name(f"{self.path.name}.{uuid.uuid4().hex}.aside")
        try:
            os.rename(self.path, aside)
        except FileNotFoundError:
            return False
        try:
            if self._read_token(aside) == token:
                return True
            try:
                os.link(aside, self.path)
            except FileExistsError:
                logger.warning(f"Lock {self.path.name} was re-taken while restoring another writer's marker")
            return False
        finally:
            aside.unlink(missing_ok=True)

    @staticmethod
    def _read_token(path: Path) -> str | None:
        try:
            return path.read_text(encoding="ascii", errors="replace")
        except FileNotFoundError:
            return None

    def __enter__(self) -> "ProfileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
