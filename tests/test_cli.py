"""
Tests for gemini_tasks.cli module.

The browser is replaced by a fake session factory; everything else
(tasks.yaml, prompt loading, procedures, attempt loop) is real.
"""

from unittest.mock import MagicMock, patch

import pytest
from fakes import FakeDriver, FakeSession, RecordingNotifier

from gemini_tasks import cli, config
from gemini_tasks.engine.browser_controller import ProfileLockedError
from gemini_tasks.engine.ui_contract import DEFAULT_UI_CONTRACT

CHAT_URL = "https://gemini.google.com/app/abc123"


class FakeBrowserSession(FakeSession):
    def __init__(self, driver, profile_dir, headless, start_error=None):
        super().__init__(driver)
        self.profile_dir = profile_dir
        self.headless = headless
        self.start_error = start_error
        self.started = False
        self.close_calls = 0

    def start(self):
        if self.start_error:
            raise self.start_error
        self.started = True

    def close(self):
        self.close_calls += 1


def session_factory_for(driver, start_error=None):
    created = []

    def factory(profile_dir, headless=True):
        session = FakeBrowserSession(driver, profile_dir, headless, start_error)
        created.append(session)
        return session

    factory.created = created
    return factory


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """tasks.yaml + prompt in tmp_path, runtime dirs redirected there too."""
    (tmp_path / "prompts").mkdir()
    (tmp_path / "prompts" / "brief.txt").write_text("Brief for {{CURRENT_DATE}}", encoding="utf-8")
    (tmp_path / "prompts" / "blank.txt").write_text("  \n\t\n", encoding="utf-8")
    (tmp_path / "prompts" / "garbled.txt").write_bytes(b"Hi \xff\xfe {{CURRENT_DATE}}")
    (tmp_path / "tasks.yaml").write_text(
        "tasks:\n"
        "  - {name: Morning Briefing, mode: pro, promptFile: prompts/brief.txt,"
        " schedule: {hour: 7, minute: 30}}\n"
        "  - {name: Silent, mode: pro, promptFile: prompts/missing.txt, notify: false,"
        " schedule: {hour: 8, minute: 0}}\n"
        "  - {name: Broken, mode: pro, promptFile: prompts/missing.txt,"
        " schedule: {hour: 9, minute: 0}}\n"
        "  - {name: Blank, mode: pro, promptFile: prompts/blank.txt,"
        " schedule: {hour: 10, minute: 0}}\n"
        "  - {name: Garbled, mode: deep-research, promptFile: prompts/garbled.txt,"
        " schedule: {hour: 11, minute: 0}}\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(config, "PROFILE_DIR", tmp_path / "chrome-profile")
    monkeypatch.setattr(config, "LOGS_DIR", tmp_path / "logs")
    monkeypatch.setattr(config, "UI_CONTRACT_FILE", None)
    monkeypatch.setenv("GEMINI_MAX_RETRIES", "2")
    monkeypatch.setenv("GEMINI_RETRY_PAUSE_S", "0")
    return tmp_path


class TestRunTask:
    """Test run_task function."""

    def test_pro_task_end_to_end(self, workspace):
        """Should exit 0, notify once with the chat URL and close the browser."""
        driver = FakeDriver(visible={DEFAULT_UI_CONTRACT.input_surface}, urls=[CHAT_URL])
        factory = session_factory_for(driver)
        notifier = RecordingNotifier()

        code = cli.run_task(
            "Morning Briefing",
            workspace / "tasks.yaml",
            headless=True,
            notifier=notifier,
            session_factory=factory,
        )

        assert code == 0
        assert notifier.successes == [("Morning Briefing", CHAT_URL, "Pro")]
        assert notifier.failures == []
        (session,) = factory.created
        assert session.profile_dir == workspace / "chrome-profile"
        assert session.headless is True
        assert session.opened == 1
        assert session.close_calls == 1
        (_, text), = driver.fills
        assert text.startswith("Brief for ")

    def test_exhausted_retries(self, workspace):
        """Should exit 1 after GEMINI_MAX_RETRIES failed attempts."""
        driver = FakeDriver()
        factory = session_factory_for(driver)
        notifier = RecordingNotifier()

        code = cli.run_task(
            "Morning Briefing",
            workspace / "tasks.yaml",
            headless=True,
            notifier=notifier,
            session_factory=factory,
        )

        assert code == 1
        assert notifier.failures == [("Morning Briefing", "Failed after 2 attempts")]
        assert factory.created[0].opened == 2
        assert factory.created[0].close_calls == 1

    def test_unknown_task(self, workspace):
        factory = session_factory_for(FakeDriver())

        code = cli.run_task(
            "Nope", workspace / "tasks.yaml", headless=True, session_factory=factory
        )

        assert code == 1
        assert factory.created == []

    def test_missing_prompt_fails_before_browser(self, workspace):
        """Should notify and exit 1 without starting a browser."""
        factory = session_factory_for(FakeDriver())
        notifier = RecordingNotifier()

        code = cli.run_task(
            "Broken",
            workspace / "tasks.yaml",
            headless=True,
            notifier=notifier,
            session_factory=factory,
        )

        assert code == 1
        assert factory.created == []
        assert len(notifier.failures) == 1
        assert "Prompt file not found" in notifier.failures[0][1]

    @pytest.mark.parametrize(
        "task_name,message",
        [("Blank", "Prompt file is empty"), ("Garbled", "Prompt file is unreadable")],
    )
    def test_unusable_prompt_fails_before_browser(self, workspace, task_name, message):
        """Should treat blank and non-UTF-8 prompts as fatal, without a browser."""
        factory = session_factory_for(FakeDriver())
        notifier = RecordingNotifier()

        code = cli.run_task(
            task_name,
            workspace / "tasks.yaml",
            headless=True,
            notifier=notifier,
            session_factory=factory,
        )

        assert code == 1
        assert factory.created == []
        assert len(notifier.failures) == 1
        assert message in notifier.failures[0][1]

    def test_missing_prompt_respects_notify_false(self, workspace):
        notifier = RecordingNotifier()

        code = cli.run_task(
            "Silent",
            workspace / "tasks.yaml",
            headless=True,
            notifier=notifier,
            session_factory=session_factory_for(FakeDriver()),
        )

        assert code == 1
        assert notifier.calls == 0

    def test_profile_locked(self, workspace):
        factory = session_factory_for(FakeDriver(), start_error=ProfileLockedError("in use"))

        code = cli.run_task(
            "Morning Briefing",
            workspace / "tasks.yaml",
            headless=True,
            notifier=RecordingNotifier(),
            session_factory=factory,
        )

        assert code == 1
        assert factory.created[0].opened == 0

    def test_browser_start_failure(self, workspace):
        factory = session_factory_for(FakeDriver(), start_error=RuntimeError("no chromium"))

        code = cli.run_task(
            "Morning Briefing",
            workspace / "tasks.yaml",
            headless=True,
            notifier=RecordingNotifier(),
            session_factory=factory,
        )

        assert code == 1

    def test_invalid_ui_contract_file(self, workspace, monkeypatch):
        monkeypatch.setattr(config, "UI_CONTRACT_FILE", str(workspace / "missing.json"))
        factory = session_factory_for(FakeDriver())

        code = cli.run_task(
            "Morning Briefing",
            workspace / "tasks.yaml",
            headless=True,
            notifier=RecordingNotifier(),
            session_factory=factory,
        )

        assert code == 1
        assert factory.created == []


class TestMain:
    """Test main entry point."""

    def test_requires_task(self, workspace, clean_logging):
        assert cli.main([]) == 1

    def test_list(self, workspace, clean_logging, capsys):
        code = cli.main(["--list", "--tasks-file", str(workspace / "tasks.yaml")])

        assert code == 0
        out = capsys.readouterr().out
        assert "1. Morning Briefing (pro) at 07:30" in out
        assert "3. Broken (pro) at 09:00" in out

    def test_task_log_file_and_headless_flag(self, workspace, clean_logging, monkeypatch):
        """Should log to logs/<slug>.log and honour --visible."""
        run_task = MagicMock(return_value=0)
        monkeypatch.setattr(cli, "run_task", run_task)
        monkeypatch.setattr(config, "HEADLESS", True)

        code = cli.main(["--task", "Morning Briefing", "--visible"])

        assert code == 0
        assert run_task.call_args.kwargs["headless"] is False
        assert (workspace / "logs" / "morning-briefing.log").exists()

    def test_exit_code_is_propagated(self, workspace, clean_logging, monkeypatch):
        monkeypatch.setattr(cli, "run_task", MagicMock(return_value=1))

        assert cli.main(["--task", "Morning Briefing"]) == 1

    def test_tail(self, workspace, capsys):
        logs = workspace / "logs"
        logs.mkdir()
        (logs / "morning-briefing.log").write_text(
            "[INFO] a\n[ERROR] b\n[INFO] c\n", encoding="utf-8"
        )

        assert cli.main(["--task", "Morning Briefing", "--tail", "2"]) == 0
        assert capsys.readouterr().out == "[ERROR] b\n[INFO] c\n"

        assert cli.main(["--task", "Morning Briefing", "--tail", "5", "--errors"]) == 0
        assert capsys.readouterr().out == "[ERROR] b\n"

    def test_login_only(self, workspace, clean_logging):
        """Should open a headed session and always close it."""
        with patch.object(cli, "BrowserSession") as session_cls, patch.object(
            cli, "run_login_session"
        ) as login:
            code = cli.main(["--login-only"])

        assert code == 0
        session_cls.assert_called_once_with(workspace / "chrome-profile", headless=False)
        login.assert_called_once()
        session_cls.return_value.close.assert_called_once()

    def test_login_only_profile_locked(self, workspace, clean_logging):
        with patch.object(cli, "BrowserSession") as session_cls, patch.object(
            cli, "run_login_session"
        ) as login:
            session_cls.return_value.start.side_effect = ProfileLockedError("in use")
            code = cli.main(["--login-only"])

        assert code == 1
        login.assert_not_called()
