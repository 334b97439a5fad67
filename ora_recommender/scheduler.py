"""Weekly scheduler daemon for the recommendation batch.

No external scheduler library is required; uses stdlib ``time``,
``signal`` and ``subprocess`` only.

Typical usage via the CLI::

    ora-recs start-scheduler                 # Monday 03:00 UTC from config
    ora-recs start-scheduler --weekday 2 --time 04:30

Or import directly::

    from ora_recommender.scheduler import WeeklyScheduler
    WeeklyScheduler(db_path="data/db/ora_recommender.db").start()

Each weekly run invokes ``ora-recs run-weekly`` as a subprocess, so every
run has its own process, logging and exit code. A failed run is logged and
the daemon waits for the following week.
"""

from __future__ import annotations

import logging
import platform
import signal
import subprocess
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from ora_recommender.utils.time_utils import next_weekly_run, utcnow

log = logging.getLogger(__name__)

RUN_TIMEOUT_SEC = 6 * 3600
TICK_SEC = 30


def _find_cli_exe() -> str:
    """Locate the ``ora-recs`` executable next to the active interpreter."""
    scripts_dir = Path(sys.executable).parent
    name = "ora-recs.exe" if platform.system() == "Windows" else "ora-recs"
    candidate = scripts_dir / name
    if candidate.exists():
        return str(candidate)
    raise RuntimeError(
        f"Could not find ora-recs executable in {scripts_dir}. Run: pip install -e ."
    )


class WeeklyScheduler:
    """Runs ``run-weekly`` once a week at a fixed UTC weekday and time.

    Parameters
    ----------
    db_path:
        SQLite database forwarded to the CLI.
    weekday:
        0 = Monday … 6 = Sunday.
    weekly_time:
        UTC ``HH:MM``.
    config_path:
        Optional TOML config forwarded to the CLI.
    cli_exe:
        Full path to the CLI executable; auto-detected when *None*.
    """

    def __init__(
        self,
        db_path: str,
        weekday: int = 0,
        weekly_time: str = "03:00",
        config_path: Optional[str] = None,
        cli_exe: Optional[str] = None,
    ) -> None:
        self.db_path = db_path
        self.weekday = weekday
        self.weekly_time = weekly_time
        self.config_path = config_path
        self.cli_exe = cli_exe or _find_cli_exe()
        self.next_run: datetime = next_weekly_run(weekday, weekly_time)
        self._running = False

    def _command(self) -> list[str]:
        cmd = [self.cli_exe, "run-weekly", "--db-path", self.db_path]
        if self.config_path:
            cmd += ["--config", self.config_path]
        return cmd

    def run_weekly(self) -> bool:
        """Run the weekly batch once. Returns ``True`` on exit code 0."""
        cmd = self._command()
        log.info("=== Weekly recommendations starting: %s ===", " ".join(cmd))
        try:
            result = subprocess.run(cmd, timeout=RUN_TIMEOUT_SEC)
        except subprocess.TimeoutExpired:
            log.error("Weekly run timed out after %d s.", RUN_TIMEOUT_SEC)
            return False
        except OSError as exc:
            log.error("Weekly run could not start: %s", exc)
            return False
        if result.returncode == 0:
            log.info("Weekly run completed successfully (exit 0).")
            return True
        log.error("Weekly run exited with code %d.", result.returncode)
        return False

    def tick(self, now: Optional[datetime] = None) -> bool:
        """Fire the weekly run if it is due. Returns ``True`` if it fired."""
        now = now or utcnow()
        if now < self.next_run:
            return False
        self.run_weekly()
        self.next_run = next_weekly_run(self.weekday, self.weekly_time, now=now)
        log.info("Next weekly run: %s", self.next_run.isoformat(timespec="seconds"))
        return True

    def start(self) -> None:
        """Start the daemon. Blocks until Ctrl-C (or SIGTERM on Linux/macOS)."""
        log.info(
            "Scheduler started. weekday=%d time=%s UTC db=%s | next run: %s",
            self.weekday, self.weekly_time, self.db_path,
            self.next_run.isoformat(timespec="seconds"),
        )
        self._running = True

        def _shutdown(signum, frame):  # noqa: ANN001
            log.info("Signal %d received, stopping scheduler.", signum)
            self._running = False

        signal.signal(signal.SIGINT, _shutdown)
        if platform.system() != "Windows":
            signal.signal(signal.SIGTERM, _shutdown)

        while self._running:
            self.tick()
            time.sleep(TICK_SEC)

        log.info("Scheduler stopped.")
