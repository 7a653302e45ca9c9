"""
Cross-process scrape cycle lock.

Cycles can be started by the server schedule, the CLI or a cron job. Each of
them first creates DATA_DIR/cycle.lock exclusively; the file records the
owner as JSON ({"pid", "started_at", "trigger"}). A lock whose process is
gone, or that is older than STALE_AFTER, is treated as abandoned and replaced.
"""
import json
import os
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from voucher_finder.utils.logging import get_logger

logger = get_logger(__name__)

LOCK_FILE_NAME = "cycle.lock"
STALE_AFTER = 3600  # seconds
BREAKER_STALE_AFTER = 60  # seconds


@dataclass(frozen=True)
class LockOwner:
    """Process that holds (or held) the lock."""

    pid: int
    started_at: float
    trigger: str = "unknown"

    @classmethod
    def current(cls, trigger: str) -> "LockOwner":
        return cls(pid=os.getpid(), started_at=time.time(), trigger=trigger)

    @property
    def age(self) -> float:
        return time.time() - self.started_at

    def describe(self) -> str:
        return f"PID {self.pid} ({self.trigger}, started {int(self.age)}s ago)"


def pid_alive(pid: int) -> bool:
    """True if a process with this PID exists."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Someone else's process
        return True
    except OSError:
        return False
    return True


class CycleLock:
    """Lock file guarding one data directory against overlapping cycles."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def owner(self) -> Optional[LockOwner]:
        """Owner recorded in the lock file, stale or not. None if there is no file."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return LockOwner(
                pid=int(data["pid"]),
                started_at=float(data["started_at"]),
                trigger=str(data.get("trigger", "unknown")),
            )
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as e:
            # Half-written or foreign content: age it by mtime, no live PID
            logger.warning(f"Unreadable lock file {self.path}: {e}")
            try:
                started_at = self.path.stat().st_mtime
            except OSError:
                return None
            return LockOwner(pid=0, started_at=started_at, trigger="unreadable")

    def is_stale(self, owner: LockOwner) -> bool:
        if owner.pid > 0 and not pid_alive(owner.pid):
            logger.info(f"Cycle lock is stale: process {owner.pid} is gone")
            return True
        if owner.age > STALE_AFTER:
            logger.info(f"Cycle lock is stale: {owner.age:.0f}s old (limit {STALE_AFTER}s)")
            return True
        return False

    def holder(self) -> Optional[LockOwner]:
        """Owner of a valid lock, None when unlocked or the lock is stale."""
        owner = self.owner()
        if owner is None or self.is_stale(owner):
            return None
        return owner

    def is_held(self) -> bool:
        return self.holder() is not None

    def acquire(self, trigger: str = "unknown") -> bool:
        """
        Take the lock for this process.

        Returns:
            True if acquired, False if a live cycle holds it.

        Raises:
            OSError: If the lock file can't be created or removed, e.g. in a
                read-only data directory.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        owner = self.owner()
        if owner is not None:
            if not self.is_stale(owner):
                return False
            logger.info(f"Replacing stale cycle lock of PID {owner.pid}")
            if not self._break_stale(owner):
                return False

        me = LockOwner.current(trigger)
        try:
            # O_EXCL: only one of several concurrent acquirers creates the file
            fd = os.open(str(self.path), os.O_WRONLY | os.O_CREAT | os.O_EXCL)
        except FileExistsError:
            return False
        except OSError as e:
            logger.error(f"Cannot create lock file {self.path}: {e}")
            raise

        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(asdict(me), f)
        logger.info(f"Acquired cycle lock: {me.describe()}")
        return True

    @property
    def breaker_path(self) -> Path:
        return self.path.with_name(f"{self.path.name}.break")

    def _break_stale(self, stale: LockOwner) -> bool:
        """
        Remove a stale lock file, unless it was replaced in the meantime.

        Only the process holding the breaker file may remove the lock, and it
        re-reads the owner first. A competitor that already broke the stale
        lock and created its own is therefore never unlinked.

        Returns:
            True if the stale lock is gone, False if another process is
            breaking it or already replaced it.
        """
        breaker = self.breaker_path
        try:
            fd = os.open(str(breaker), os.O_WRONLY | os.O_CREAT | os.O_EXCL)
        except FileExistsError:
            self._clear_abandoned_breaker()
            return False
        os.close(fd)

        try:
            current = self.owner()
            if current is not None and current != stale:
                logger.info("Stale cycle lock was already replaced by another process")
                return False
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            return True
        finally:
            breaker.unlink(missing_ok=True)

    def _clear_abandoned_breaker(self) -> None:
        """Remove a breaker file left behind by a process that died while breaking."""
        try:
            age = time.time() - self.breaker_path.stat().st_mtime
        except FileNotFoundError:
            return
        if age > BREAKER_STALE_AFTER:
            logger.warning(f"Removing abandoned lock breaker {self.breaker_path} ({age:.0f}s old)")
            self.breaker_path.unlink(missing_ok=True)

    def release(self) -> bool:
        """Remove the lock if this process owns it."""
        owner = self.owner()
        if owner is None:
            return True
        if owner.pid != os.getpid():
            logger.warning(f"Not releasing cycle lock held by PID {owner.pid}")
            return False
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Cannot release lock {self.path}: {e}")
            return False
        logger.info("Released cycle lock")
        return True
