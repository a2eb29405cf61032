"""
Unit tests for scripts/process_reel_cli.py

The service is patched out; only argument handling, exit codes and the
printed messages are checked.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from core.errors import MediaNotFoundError, PipelineError
from scripts import process_reel_cli

POST_URL = "https://www.instagram.com/reel/C8abc123xyz/"


def run_cli(monkeypatch, *args):
    monkeypatch.setattr("sys.argv", ["process_reel_cli.py", *args])
    with patch.object(process_reel_cli, "load_dotenv"), \
            patch.object(process_reel_cli.Config, "setup_logging"):
        process_reel_cli.main()


class TestProcessReelCli:
    """Tests for the CLI entry point"""

    @pytest.mark.unit
    def test_missing_api_key_exits_cleanly(self, monkeypatch, capsys):
        """Should print a configuration error and exit 1 instead of a traceback"""
        with patch.object(process_reel_cli.ReelService, "from_config",
                          side_effect=ValueError("ANTHROPIC_API_KEY not set")):
            with pytest.raises(SystemExit) as exc_info:
                run_cli(monkeypatch, POST_URL)

        assert exc_info.value.code == 1
        output = capsys.readouterr().out
        assert "❌ Configuration error" in output
        assert "ANTHROPIC_API_KEY" in output

    @pytest.mark.unit
    def test_invalid_url_exits_2(self, monkeypatch, capsys):
        """Should reject a non-post URL before building the service"""
        with patch.object(process_reel_cli.ReelService, "from_config") as from_config:
            with pytest.raises(SystemExit) as exc_info:
                run_cli(monkeypatch, "https://example.com/video")

        assert exc_info.value.code == 2
        from_config.assert_not_called()
        assert "❌" in capsys.readouterr().out

    @pytest.mark.unit
    def test_pipeline_failure_names_step(self, monkeypatch, capsys):
        """Should print the failed step and exit 1"""
        service = Mock()
        service.submit = AsyncMock(side_effect=PipelineError("fetching", MediaNotFoundError("gone")))
        service.shutdown = AsyncMock()

        with patch.object(process_reel_cli.ReelService, "from_config", return_value=service):
            with pytest.raises(SystemExit) as exc_info:
                run_cli(monkeypatch, POST_URL)

        assert exc_info.value.code == 1
        assert "Failed at step 'fetching'" in capsys.readouterr().out
        service.shutdown.assert_awaited_once()
