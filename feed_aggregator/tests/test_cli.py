"""Tests for the CLI module."""

import json
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from feed_aggregator.cli import app
from feed_aggregator.collector.error_handler import ConfigurationError
from feed_aggregator.config import Config
from feed_aggregator.models.upstream import Page


def valid_config() -> Config:
    config = Config()
    config.reddit.client_id = "id"
    config.reddit.client_secret = "secret"
    config.reddit.username = "user"
    config.reddit.password = "pass"
    return config


@patch("feed_aggregator.cli.setup_logging")
class TestCli(unittest.TestCase):
    """Test cases for the CLI interface."""

    def setUp(self):
        self.runner = CliRunner()

    @patch("feed_aggregator.cli.Config.from_files")
    def test_validate_ok(self, mock_from_files, mock_logging):
        mock_from_files.return_value = valid_config()

        result = self.runner.invoke(app, ["validate"])

        self.assertEqual(result.exit_code, 0)
        self.assertIn("Configuration OK", result.output)

    @patch("feed_aggregator.cli.Config.from_files")
    def test_validate_reports_errors(self, mock_from_files, mock_logging):
        config = valid_config()
        config.reddit.client_id = ""
        config.scraper.cron = "every tuesday"
        mock_from_files.return_value = config

        result = self.runner.invoke(app, ["validate", "--config", "custom.yaml"])

        self.assertEqual(result.exit_code, 1)
        mock_from_files.assert_called_once_with("custom.yaml")

    @patch("feed_aggregator.cli.run_scrape")
    @patch("feed_aggregator.cli.Config.from_files")
    def test_scrape_command(self, mock_from_files, mock_run_scrape, mock_logging):
        config = valid_config()
        mock_from_files.return_value = config

        with patch("feed_aggregator.cli.asyncio.run") as mock_run:
            result = self.runner.invoke(app, ["scrape", "--schedule"])

        self.assertEqual(result.exit_code, 0)
        mock_run_scrape.assert_called_once_with(config, True)
        mock_run.assert_called_once()

    @patch("feed_aggregator.cli.run_scrape")
    @patch("feed_aggregator.cli.Config.from_files")
    def test_scrape_configuration_error_exits_non_zero(self, mock_from_files, mock_run_scrape, mock_logging):
        mock_from_files.return_value = valid_config()

        with patch("feed_aggregator.cli.asyncio.run", side_effect=ConfigurationError("no credentials")):
            result = self.runner.invoke(app, ["scrape"])

        self.assertEqual(result.exit_code, 1)

    @patch("feed_aggregator.cli.RedditClient")
    @patch("feed_aggregator.cli.Config.from_files")
    def test_reddit_command_prints_page(self, mock_from_files, mock_client_cls, mock_logging):
        mock_from_files.return_value = valid_config()
        client = MagicMock()
        client.fetch_page = AsyncMock(return_value=Page(items=[{"id": "abc"}], next_cursor="t3_abc"))
        mock_client_cls.return_value.__aenter__.return_value = client

        result = self.runner.invoke(app, ["reddit", "funnyvideos", "--limit", "5", "--sort", "top"])

        self.assertEqual(result.exit_code, 0)
        client.fetch_page.assert_awaited_once_with("funnyvideos", 5, "top", None)
        self.assertEqual(json.loads(result.stdout), {"videos": [{"id": "abc"}], "after": "t3_abc"})

    @patch("feed_aggregator.cli.RedGifsClient")
    @patch("feed_aggregator.cli.Config.from_files")
    def test_redgifs_command_with_tags(self, mock_from_files, mock_client_cls, mock_logging):
        mock_from_files.return_value = valid_config()
        client = MagicMock()
        client.fetch_by_tags = AsyncMock(return_value=[{"id": "Gif"}])
        mock_client_cls.return_value.__aenter__.return_value = client

        result = self.runner.invoke(app, ["redgifs", "--tags", "cats, dogs", "--limit", "3"])

        self.assertEqual(result.exit_code, 0)
        client.fetch_by_tags.assert_awaited_once_with(["cats", "dogs"], 3)
        self.assertEqual(json.loads(result.stdout), [{"id": "Gif"}])


if __name__ == "__main__":
    unittest.main()
