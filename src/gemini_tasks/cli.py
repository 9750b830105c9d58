from __future__ import annotations

import argparse
import logging
from pathlib import Path

from . import config
from .engine.attempt_loop import AttemptLoop
from .engine.browser_controller import BrowserSession, ProfileLockedError
from .engine.login import run_login_session
from .engine.models import TaskMode
from .engine.procedures import build_procedures
from .engine.prompts import PromptError, load_prompt
from .engine.ui_contract import load_ui_contract
from .notifier import NullNotifier, TelegramNotifier
from .tasks import TaskSourceError, get_all_tasks, get_task, slugify
from .utils.log_utils import log_file_for, read_log_tail, setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gemini-tasks",
        description="Run a scheduled Gemini task (Pro prompt or Deep Research)",
    )
    parser.add_argument("--task", metavar="NAME", help="Task name from tasks.yaml")
    parser.add_argument(
        "--login-only",
        action="store_true",
        help="Open a visible browser for manual Google login, then exit",
    )
    parser.add_argument("--visible", action="store_true", help="Run with a visible browser")
    parser.add_argument("--list", action="store_true", help="List configured tasks and exit")
    parser.add_argument(
        "--tail",
        type=int,
        metavar="N",
        help="Print the last N lines of the task log (or gemini.log) and exit",
    )
    parser.add_argument(
        "--errors", action="store_true", help="With --tail: only error lines"
    )
    parser.add_argument(
        "--tasks-file",
        type=Path,
        default=config.TASKS_FILE,
        help=f"Tasks file (default: {config.TASKS_FILE})",
    )
    return parser


def list_tasks(tasks_file: Path) -> int:
    try:
        tasks = get_all_tasks(tasks_file)
    except TaskSourceError as e:
        logger.error(f"ERROR: {e}")
        return 1
    for i, task in enumerate(tasks, start=1):
        print(f"  {i}. {task.name} ({task.mode}) at {task.schedule}")
    return 0


def run_task(
    task_name: str,
    tasks_file: Path,
    headless: bool,
    notifier=None,
    session_factory=BrowserSession,
) -> int:
    """Load the task, pre-check the prompt, then run the attempt loop in one browser session."""
    try:
        task = get_task(task_name, tasks_file)
    except TaskSourceError as e:
        logger.error(f"ERROR: {e}")
        return 1
    logger.info(f"[Run] Loaded task: {task.name} (mode: {task.mode})")

    notifier = notifier or (TelegramNotifier() if task.notify else NullNotifier())

    # no browser for a prompt that can never work
    try:
        load_prompt(task.prompt_file)
    except PromptError as e:
        logger.error(f"ERROR: {e}")
        if task.notify:
            try:
                notifier.notify_failure(task.name, str(e))
            except Exception as notify_err:
                logger.warning(f"[Notify] Notification failed: {notify_err}")
        return 1

    if TaskMode.parse(task.mode) is None:
        logger.error(f"ERROR: Unknown mode: {task.mode}")
        return 1

    try:
        contract = load_ui_contract(config.UI_CONTRACT_FILE)
    except (OSError, ValueError) as e:
        logger.error(f"ERROR: Invalid UI contract file: {e}")
        return 1

    runner_config = config.RunnerConfig.from_env()
    session = session_factory(config.PROFILE_DIR, headless=headless)
    try:
        session.start()
    except ProfileLockedError as e:
        logger.critical(f"❌ [Browser] {e}")
        return 1
    except Exception as e:
        logger.critical(f"❌ [Browser] FATAL: could not start browser: {e}")
        return 1

    try:
        loop = AttemptLoop(
            build_procedures(session, runner_config, contract),
            notifier,
            max_retries=runner_config.max_retries,
            retry_pause_s=runner_config.retry_pause_s,
        )
        report = loop.run(task)
    finally:
        logger.info("[Browser] Closing browser")
        session.close()

    return report.exit_code


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    slug = slugify(args.task) if args.task else None

    if args.tail:
        for line in read_log_tail(log_file_for(config.LOGS_DIR, slug), args.tail, args.errors):
            print(line, end="")
        return 0

    setup_logging(log_file_for(config.LOGS_DIR, slug))

    if args.list:
        return list_tasks(args.tasks_file)

    logger.info("Starting Gemini automation")

    if args.login_only:
        session = BrowserSession(config.PROFILE_DIR, headless=False)
        try:
            session.start()
            run_login_session(session, config.GEMINI_APP_URL)
        except ProfileLockedError as e:
            logger.critical(f"❌ [Browser] {e}")
            return 1
        except KeyboardInterrupt:
            logger.info("Interrupted.")
        except Exception as e:
            logger.critical(f"❌ [Browser] FATAL: login session failed: {e}")
            return 1
        finally:
            session.close()
        return 0

    if not args.task:
        logger.error("ERROR: --task argument is required")
        parser.print_usage()
        return 1

    headless = config.HEADLESS and not args.visible
    try:
        return run_task(args.task, args.tasks_file, headless=headless)
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
