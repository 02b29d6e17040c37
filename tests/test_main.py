"""Tests for the __main__.py CLI."""

import logging
import os
from unittest.mock import MagicMock, patch

import pytest

from clipvault.__main__ import configure_logging, format_entry, main, run_app, running_pid, write_pid_file
from clipvault.exceptions import MigrationError
from clipvault.models import ClipEntry, ContentType
from clipvault.settings import Settings, SettingsManager


@pytest.fixture
def mock_service(tmp_path):
    with patch("clipvault.__main__.ClipboardService") as service_class:
        service = MagicMock()
        service.settings.get.return_value = Settings(custom_data_path=str(tmp_path))
        service_class.open.return_value = service
        yield service


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("clipvault.__main__.configure_logging") as mock_configure:
        yield mock_configure


def _entry(text="hello", pinned=False) -> ClipEntry:
    entry = ClipEntry.new(text.encode(), ContentType.TEXT)
    entry.is_pinned = pinned
    return entry


class TestFormatEntry:
    def test_contains_preview_and_type(self):
        line = format_entry(_entry("some copied text"))
        assert "[text]" in line
        assert "some copied text" in line

    def test_pinned_marker(self):
        assert format_entry(_entry(pinned=True)).startswith("*")
        assert format_entry(_entry()).startswith(" ")


class TestCLIParsing:
    @patch("clipvault.__main__.run_app", return_value=0)
    def test_default_runs(self, mock_run, no_logging_setup):
        with patch("sys.argv", ["clipvault"]):
            with pytest.raises(SystemExit) as exc:
                main()
        assert exc.value.code == 0
        mock_run.assert_called_once()
        no_logging_setup.assert_called_once_with(False, to_file=True)

    @patch("clipvault.__main__.run_app", return_value=0)
    def test_run_command_verbose(self, mock_run, no_logging_setup):
        with patch("sys.argv", ["clipvault", "-v", "run"]):
            with pytest.raises(SystemExit):
                main()
        no_logging_setup.assert_called_once_with(True, to_file=True)

    def test_recent(self, mock_service, capsys, no_logging_setup):
        mock_service.get_recent.return_value = [_entry("first"), _entry("second")]
        with patch("sys.argv", ["clipvault", "recent", "-n", "5"]):
            with pytest.raises(SystemExit) as exc:
                main()
        assert exc.value.code == 0
        mock_service.get_recent.assert_called_once_with(5)
        mock_service.shutdown.assert_called_once()
        out = capsys.readouterr().out
        assert "first" in out and "second" in out
        no_logging_setup.assert_called_once_with(False, to_file=False)

    def test_recent_empty(self, mock_service, capsys):
        mock_service.get_recent.return_value = []
        with patch("sys.argv", ["clipvault", "recent"]):
            with pytest.raises(SystemExit):
                main()
        assert "(No clipboard history)" in capsys.readouterr().out

    def test_search_hit(self, mock_service, capsys):
        mock_service.search.return_value = [_entry("needle")]
        with patch("sys.argv", ["clipvault", "search", "need"]):
            with pytest.raises(SystemExit) as exc:
                main()
        assert exc.value.code == 0
        mock_service.search.assert_called_once_with("need")
        assert "needle" in capsys.readouterr().out

    def test_search_miss(self, mock_service, capsys):
        mock_service.search.return_value = []
        with patch("sys.argv", ["clipvault", "search", "nothing"]):
            with pytest.raises(SystemExit) as exc:
                main()
        assert exc.value.code == 1
        assert 'No results for "nothing"' in capsys.readouterr().out

    def test_clear_all(self, mock_service):
        mock_service.clear_all.return_value = 3
        with patch("sys.argv", ["clipvault", "clear"]):
            with pytest.raises(SystemExit):
                main()
        mock_service.clear_all.assert_called_once()
        mock_service.clear_non_pinned.assert_not_called()

    def test_clear_keep_pinned(self, mock_service, capsys):
        mock_service.clear_non_pinned.return_value = 2
        with patch("sys.argv", ["clipvault", "clear", "--keep-pinned"]):
            with pytest.raises(SystemExit):
                main()
        mock_service.clear_non_pinned.assert_called_once()
        assert "Removed 2 entries." in capsys.readouterr().out

    def test_error_exits_with_message(self, capsys):
        with patch("clipvault.__main__.migrate", side_effect=MigrationError("no key")):
            with patch("sys.argv", ["clipvault", "migrate", "/tmp/elsewhere"]):
                with pytest.raises(SystemExit) as exc:
                    main()
        assert exc.value.code == 1
        assert "Error: no key" in capsys.readouterr().err


class TestMigrateCommand:
    def test_records_new_location(self, tmp_path):
        settings_path = tmp_path / "settings.json"
        dest = tmp_path / "new"
        with patch("clipvault.__main__.SettingsManager", lambda: SettingsManager(settings_path)):
            with patch("clipvault.__main__.migrate_data") as mock_migrate:
                with patch("sys.argv", ["clipvault", "migrate", str(dest), "--delete-old"]):
                    with pytest.raises(SystemExit) as exc:
                        main()
        assert exc.value.code == 0
        assert mock_migrate.call_args.kwargs == {"delete_old": True}
        assert SettingsManager(settings_path).load().custom_data_path == str(dest.resolve())

    def test_refuses_while_running(self, tmp_path, capsys):
        settings_path = tmp_path / "settings.json"
        source = tmp_path / "old"
        source.mkdir()
        manager = SettingsManager(settings_path)
        manager.update(custom_data_path=str(source))
        manager.save()
        write_pid_file(source)

        with patch("clipvault.__main__.SettingsManager", lambda: SettingsManager(settings_path)):
            with patch("clipvault.__main__.migrate_data") as mock_migrate:
                with patch("sys.argv", ["clipvault", "migrate", str(tmp_path / "new"), "--delete-old"]):
                    with pytest.raises(SystemExit) as exc:
                        main()
        assert exc.value.code == 1
        mock_migrate.assert_not_called()
        assert "quit it before migrating" in capsys.readouterr().err

    def test_failed_migration_keeps_settings(self, tmp_path):
        settings_path = tmp_path / "settings.json"
        with patch("clipvault.__main__.SettingsManager", lambda: SettingsManager(settings_path)):
            with patch("clipvault.__main__.migrate_data", side_effect=MigrationError("size mismatch")):
                with patch("sys.argv", ["clipvault", "migrate", str(tmp_path / "new")]):
                    with pytest.raises(SystemExit):
                        main()
        assert not settings_path.exists()


class TestRunApp:
    def test_headless_run_until_interrupted(self, mock_service):
        with patch("clipvault.__main__.sys.platform", "linux"):
            with patch("clipvault.__main__.threading") as mock_threading:
                mock_threading.Event.return_value.wait.side_effect = KeyboardInterrupt
                assert run_app() == 0
        mock_service.start_watching.assert_called_once()
        mock_service.shutdown.assert_called_once()

    def test_pid_file_written_while_running(self, mock_service, tmp_path):
        pid_path = tmp_path / "clipvault.pid"
        seen = []
        with patch("clipvault.__main__.sys.platform", "linux"):
            with patch("clipvault.__main__.threading") as mock_threading:

                def wait():
                    seen.append(pid_path.read_text())
                    raise KeyboardInterrupt

                mock_threading.Event.return_value.wait.side_effect = wait
                run_app()
        assert seen == [str(os.getpid())]
        assert not pid_path.exists()

    def test_tray_on_macos(self, mock_service):
        fake_app_module = MagicMock()
        with patch("clipvault.__main__.sys.platform", "darwin"):
            with patch.dict("sys.modules", {"clipvault.app": fake_app_module}):
                assert run_app() == 0
        fake_app_module.ClipVaultApp.assert_called_once_with(mock_service)
        fake_app_module.ClipVaultApp.return_value.run.assert_called_once()


class TestConfigureLogging:
    @patch("clipvault.__main__.logging.basicConfig")
    @patch("clipvault.__main__.logging.FileHandler")
    @patch("clipvault.__main__.ensure_dirs")
    def test_run_logs_to_file(self, mock_dirs, mock_file_handler, mock_basic):
        configure_logging(verbose=False, to_file=True)
        kwargs = mock_basic.call_args.kwargs
        assert kwargs["level"] == logging.INFO
        assert "%(asctime)s" in kwargs["format"]
        assert len(kwargs["handlers"]) == 2
        mock_dirs.assert_called_once()

    @patch("clipvault.__main__.logging.basicConfig")
    def test_one_shot_commands_stay_quiet(self, mock_basic):
        configure_logging(verbose=False, to_file=False)
        kwargs = mock_basic.call_args.kwargs
        assert kwargs["level"] == logging.WARNING
        assert len(kwargs["handlers"]) == 1

    @patch("clipvault.__main__.logging.basicConfig")
    def test_verbose(self, mock_basic):
        configure_logging(verbose=True, to_file=False)
        assert mock_basic.call_args.kwargs["level"] == logging.DEBUG


class TestRunningPid:
    def test_no_pid_file(self, tmp_path):
        assert running_pid(tmp_path) is None

    def test_live_process(self, tmp_path):
        write_pid_file(tmp_path)
        assert running_pid(tmp_path) == os.getpid()

    @pytest.mark.skipif(os.name != "posix", reason="signal-0 liveness check")
    def test_stale_pid_file(self, tmp_path):
        (tmp_path / "clipvault.pid").write_text("12345")
        with patch("clipvault.__main__.os.kill", side_effect=ProcessLookupError):
            assert running_pid(tmp_path) is None

    def test_garbage_pid_file(self, tmp_path):
        (tmp_path / "clipvault.pid").write_text("not a pid")
        assert running_pid(tmp_path) is None
