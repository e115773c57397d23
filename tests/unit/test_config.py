"""
Unit tests for SocketConfig.
"""

import pytest

from tcpsocket import SocketConfig


class TestDefaults:
    """Tests for default values."""

    def test_defaults_are_valid(self):
        config = SocketConfig()
        config.validate()
        assert config.host == "127.0.0.1"
        assert config.port == 8181
        assert config.timeout == 1
        assert config.reuse is True
        assert config.log_file is None

    def test_ephemeral_port_is_valid(self):
        """Test port 0 (OS picks) passes validation."""
        SocketConfig(port=0).validate()


class TestValidate:
    """Tests for fail-fast validation."""

    @pytest.mark.parametrize("port", [-1, 65536, 100000])
    def test_invalid_port(self, port: int):
        with pytest.raises(ValueError, match="Invalid port"):
            SocketConfig(port=port).validate()

    def test_negative_timeout(self):
        with pytest.raises(ValueError, match="timeout"):
            SocketConfig(timeout=-1).validate()

    def test_zero_buffer(self):
        with pytest.raises(ValueError, match="buffer_size"):
            SocketConfig(buffer_size=0).validate()

    def test_zero_backlog(self):
        with pytest.raises(ValueError, match="backlog"):
            SocketConfig(backlog=0).validate()

    def test_unknown_log_level(self):
        with pytest.raises(ValueError, match="log level"):
            SocketConfig(log_level="LOUD").validate()

    def test_log_level_case_insensitive(self):
        SocketConfig(log_level="debug").validate()


class TestFromEnv:
    """Tests for environment variable configuration."""

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TCPSOCKET_HOST", "0.0.0.0")
        monkeypatch.setenv("TCPSOCKET_PORT", "9000")
        monkeypatch.setenv("TCPSOCKET_TIMEOUT", "5")
        monkeypatch.setenv("TCPSOCKET_BUFFER_SIZE", "1024")
        monkeypatch.setenv("TCPSOCKET_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("TCPSOCKET_LOG_FILE", "/tmp/tcpsocket.log")

        config = SocketConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 9000
        assert config.timeout == 5
        assert config.buffer_size == 1024
        assert config.log_level == "DEBUG"
        assert config.log_file == "/tmp/tcpsocket.log"

    def test_missing_environment_uses_defaults(self, monkeypatch: pytest.MonkeyPatch):
        for name in ("HOST", "PORT", "TIMEOUT", "BUFFER_SIZE", "LOG_LEVEL", "LOG_FILE"):
            monkeypatch.delenv(f"TCPSOCKET_{name}", raising=False)

        assert SocketConfig.from_env() == SocketConfig()
