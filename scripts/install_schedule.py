#!/usr/bin/env python3
"""
Generate (and optionally install) scheduler entries for every task in tasks.yaml.

Each task fires `run.py --task <name>` once a day at its schedule.hour:minute.

Usage:
    python scripts/install_schedule.py [--format launchd|cron] [--output DIR] [--install]

Examples:
    # Write plists to ./plists (macOS LaunchAgents format)
    python scripts/install_schedule.py

    # Write plists and load them with launchctl
    python scripts/install_schedule.py --install

    # Print crontab lines (append them with `crontab -e`)
    python scripts/install_schedule.py --format cron
"""

import argparse
import logging
import shutil
import subprocess
import sys
from pathlib import Path

# Add src to path
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from gemini_tasks import config  # noqa: E402
from gemini_tasks.schedule import (  # noqa: E402
    plist_filename,
    render_cron_line,
    render_launchd_plist,
)
from gemini_tasks.tasks import TaskSourceError, get_all_tasks  # noqa: E402

logger = logging.getLogger(__name__)

LAUNCH_AGENTS_DIR = Path.home() / "Library" / "LaunchAgents"
# single plist used before per-task scheduling
LEGACY_PLIST = "com.user.gemini-research.plist"


def _unload(plist_path: Path) -> None:
    subprocess.run(
        ["launchctl", "unload", str(plist_path)],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        check=False,
    )


def _remove_stale_agents(keep: set[str]) -> list[str]:
    """Unload and delete installed task agents that are no longer in tasks.yaml."""
    stale = [p for p in LAUNCH_AGENTS_DIR.glob("gemini-task-*.plist") if p.name not in keep]
    legacy = LAUNCH_AGENTS_DIR / LEGACY_PLIST
    if legacy.exists():
        stale.append(legacy)

    removed = []
    for plist_path in sorted(stale):
        _unload(plist_path)
        plist_path.unlink(missing_ok=True)
        logger.info(f"  Removed: {plist_path.name}")
        removed.append(plist_path.name)
    return removed


def _install_plist(plist_path: Path) -> bool:
    target = LAUNCH_AGENTS_DIR / plist_path.name
    LAUNCH_AGENTS_DIR.mkdir(parents=True, exist_ok=True)
    if target.exists():
        _unload(target)
    shutil.copy2(plist_path, target)
    result = subprocess.run(
        ["launchctl", "load", str(target)], capture_output=True, text=True, check=False
    )
    if result.returncode != 0:
        logger.error(f"❌ launchctl load failed for {target.name}: {result.stderr.strip()}")
        return False
    logger.info(f"  Loaded: {target.name}")
    return True


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Generate scheduler entries for Gemini tasks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--format", choices=["launchd", "cron"], default="launchd")
    parser.add_argument(
        "--output",
        type=Path,
        default=PROJECT_ROOT / "plists",
        help="Directory for generated plists (default: ./plists)",
    )
    parser.add_argument(
        "--install",
        action="store_true",
        help="Copy plists to ~/Library/LaunchAgents and load them (launchd only)",
    )
    parser.add_argument("--tasks-file", type=Path, default=config.TASKS_FILE)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    try:
        tasks = get_all_tasks(args.tasks_file)
    except TaskSourceError as e:
        logger.error(f"❌ {e}")
        return 1

    runner_cmd = [sys.executable, str(PROJECT_ROOT / "run.py")]

    if args.format == "cron":
        for task in tasks:
            print(render_cron_line(task, runner_cmd, PROJECT_ROOT))
        return 0

    args.output.mkdir(parents=True, exist_ok=True)
    for old in args.output.glob("gemini-task-*.plist"):
        old.unlink()

    written: list[Path] = []
    for task in tasks:
        plist_path = args.output / plist_filename(task)
        plist_path.write_bytes(
            render_launchd_plist(task, runner_cmd, PROJECT_ROOT, config.LOGS_DIR)
        )
        logger.info(f"  Generated: {plist_path.name} ({task.name} at {task.schedule})")
        written.append(plist_path)

    if args.install:
        _remove_stale_agents({p.name for p in written})
        failed = [p for p in written if not _install_plist(p)]
        if failed:
            return 1
        logger.info("✅ Tasks scheduled. Verify with: launchctl list | grep gemini-task")

    return 0


if __name__ == "__main__":
    sys.exit(main())
