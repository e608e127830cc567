import signal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from llama_console import app
from llama_console.config.schema import ConsoleSettings, LoggingConfig, ServerConfig
from llama_console.errors import LaunchError
from llama_console.llm.supervisor import CleanupResult


def make_settings(llama_cpp_dir, **server_overrides):
    return ConsoleSettings(
        server=ServerConfig(llama_cpp_dir=llama_cpp_dir, startup_delay_seconds=0, **server_overrides),
        logging=LoggingConfig(log_to_file=False),
    )


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("llama_console.app.setup_logging") as mock_setup, patch("llama_console.app.cleanup_old_logs"):
        yield mock_setup


@pytest.fixture
def mock_hooks():
    with patch("llama_console.app.install_shutdown_hooks") as hooks:
        yield hooks


class TestRun:
    def test_missing_folder_exits_with_1(self, tmp_path, mock_hooks, capsys):
        with patch("llama_console.llm.process.subprocess.Popen") as mock_popen:
            exit_code = app.run(make_settings(tmp_path / "llama.cpp"))

        assert exit_code == 1
        mock_popen.assert_not_called()
        mock_hooks.assert_not_called()
        assert "Error: llama.cpp folder not found." in capsys.readouterr().out

    def test_missing_executable_exits_with_1(self, tmp_path, mock_hooks, capsys):
        folder = tmp_path / "llama.cpp"
        folder.mkdir()

        with patch("llama_console.llm.process.subprocess.Popen") as mock_popen:
            exit_code = app.run(make_settings(folder, executable_name="llama-server"))

        assert exit_code == 1
        mock_popen.assert_not_called()
        assert "Error: llama-server not found in llama.cpp folder." in capsys.readouterr().out

    def test_launch_failure_exits_with_1(self, llama_cpp_dir, mock_hooks):
        with patch("llama_console.app.ServerSupervisor") as mock_supervisor_cls:
            mock_supervisor_cls.return_value.start.side_effect = LaunchError("Failed to start llama-server: denied")

            exit_code = app.run(make_settings(llama_cpp_dir, executable_name="llama-server"))

        assert exit_code == 1
        mock_hooks.assert_called_once_with(mock_supervisor_cls.return_value)

    def test_normal_run(self, llama_cpp_dir, mock_hooks):
        settings = make_settings(llama_cpp_dir, executable_name="llama-server", port=19390)

        with patch("llama_console.app.ServerSupervisor") as mock_supervisor_cls, patch(
            "llama_console.app.LlamaClient"
        ) as mock_client_cls, patch(
            "llama_console.app.run_session", new=AsyncMock(return_value=CleanupResult(stopped=True))
        ) as mock_run_session:
            supervisor = mock_supervisor_cls.return_value
            supervisor.start.return_value.base_url = "http://127.0.0.1:19390"

            exit_code = app.run(settings)

        assert exit_code == 0
        supervisor.start.assert_called_once_with(llama_cpp_dir / "llama-server", llama_cpp_dir, port=19390)
        mock_client_cls.assert_called_once_with("http://127.0.0.1:19390", timeout=None, system_prompt="Short answer")
        mock_run_session.assert_awaited_once()
        assert mock_run_session.await_args.kwargs == {
            "model": "local",
            "exit_keyword": "exit",
            "startup_delay": 0,
        }

    def test_random_port_when_not_configured(self, llama_cpp_dir, mock_hooks):
        settings = make_settings(llama_cpp_dir, executable_name="llama-server", port_min=20000, port_max=20010)

        with patch("llama_console.app.ServerSupervisor") as mock_supervisor_cls, patch(
            "llama_console.app.LlamaClient"
        ), patch("llama_console.app.run_session", new=AsyncMock(return_value=CleanupResult(stopped=True))):
            app.run(settings)

        port = mock_supervisor_cls.return_value.start.call_args.kwargs["port"]
        assert 20000 <= port < 20010


class TestShutdownHooks:
    def test_registers_atexit_and_sigint(self):
        supervisor = MagicMock()
        with patch("llama_console.app.atexit.register") as mock_register, patch(
            "llama_console.app.signal.signal"
        ) as mock_signal:
            app.install_shutdown_hooks(supervisor)

        mock_register.assert_called_once_with(supervisor.stop)
        assert mock_signal.call_args.args[0] == signal.SIGINT

    def test_interrupt_stops_server_and_exits_zero(self, capsys):
        supervisor = MagicMock()
        with patch("llama_console.app.atexit.register"), patch("llama_console.app.signal.signal") as mock_signal:
            app.install_shutdown_hooks(supervisor)
        handler = mock_signal.call_args.args[1]

        with pytest.raises(SystemExit) as exc_info:
            handler(signal.SIGINT, None)

        assert exc_info.value.code == 0
        supervisor.stop.assert_called_once()
        # no buffered stdout writes from inside the signal handler
        assert capsys.readouterr().out == ""
