"""Unit tests for cli module."""

import signal
from unittest.mock import Mock, patch

import pytest

from udpecho.cli import build_parser, main
from udpecho.config.settings import EndpointConfig
from udpecho.errors import BindError, ReceiveError


class TestParser:
    """Test suite for argument parsing."""

    def test_default_port(self):
        """Test the port defaults to the documented local port."""
        args = build_parser().parse_args([])

        assert args.port == 62048

    @pytest.mark.parametrize("port", ["1024", "9001", "65535"])
    def test_valid_port(self, port):
        """Test ports in range are accepted."""
        args = build_parser().parse_args(["-p", port])

        assert args.port == int(port)

    @pytest.mark.parametrize("port", ["80", "1023", "65536", "abc"])
    def test_invalid_port(self, port, capsys):
        """Test ports out of range exit with a usage error."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["-p", port])

        assert exc_info.value.code == 2
        assert "port" in capsys.readouterr().err

    def test_help_mentions_buffer_and_ctrl_c(self, capsys):
        """Test the usage text describes the server."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--help"])

        out = capsys.readouterr().out
        assert "2048 bytes" in out
        assert "Ctrl + c" in out


class TestMain:
    """Test suite for main()."""

    @patch("udpecho.cli.signal.signal")
    @patch("udpecho.cli.EchoServer")
    def test_clean_shutdown(self, mock_server_class, mock_signal):
        """Test a clean run returns 0 and closes the server."""
        server = Mock()
        server.wait.return_value = True
        server.error = None
        mock_server_class.from_config.return_value = server

        assert main(["-p", "9001"]) == 0

        mock_server_class.from_config.assert_called_once_with(EndpointConfig(port=9001))
        server.start.assert_called_once()
        server.close.assert_called_once()
        assert mock_signal.call_count == 2

    @patch("udpecho.cli.signal.signal")
    @patch("udpecho.cli.EchoServer")
    def test_bind_error(self, mock_server_class, mock_signal, caplog):
        """Test a bind failure is logged and returns 1."""
        server = Mock()
        server.start.side_effect = BindError("failed to bind", operation="open")
        mock_server_class.from_config.return_value = server

        assert main([]) == 1

        assert "Failed to open endpoint" in caplog.text
        server.wait.assert_not_called()
        server.close.assert_called_once()
        # Handler installed then restored
        assert mock_signal.call_count == 2

    @patch("udpecho.cli.signal.signal")
    @patch("udpecho.cli.EchoServer")
    def test_loop_error(self, mock_server_class, mock_signal):
        """Test a loop that stopped on an error returns 1."""
        server = Mock()
        server.wait.return_value = True
        server.error = ReceiveError("failed to read data", operation="receive")
        mock_server_class.from_config.return_value = server

        assert main([]) == 1
        server.close.assert_called_once()

    @patch("udpecho.cli.signal.signal")
    @patch("udpecho.cli.EchoServer")
    def test_sigint_stops_server(self, mock_server_class, mock_signal):
        """Test the SIGINT handler requests shutdown."""
        server = Mock()
        server.error = None
        mock_server_class.from_config.return_value = server

        def wait(timeout=None):
            handler = mock_signal.call_args_list[0].args[1]
            handler(signal.SIGINT, None)
            return True

        server.wait.side_effect = wait

        assert main([]) == 0

        assert mock_signal.call_args_list[0].args[0] == signal.SIGINT
        server.stop.assert_called_once()

    @patch("udpecho.cli.signal.signal")
    @patch("udpecho.cli.EchoServer")
    def test_sigint_during_start(self, mock_server_class, mock_signal):
        """Test a SIGINT arriving while the server binds still shuts it down cleanly."""
        server = Mock()
        server.error = None
        server.wait.return_value = True
        mock_server_class.from_config.return_value = server

        def start():
            handler = mock_signal.call_args_list[0].args[1]
            handler(signal.SIGINT, None)

        server.start.side_effect = start

        assert main([]) == 0

        server.stop.assert_called_once()
        server.close.assert_called_once()
        assert mock_signal.call_args_list[-1].args[0] == signal.SIGINT
