"""Unit tests for CLI commands."""

import typer
from typer.testing import CliRunner

from campusfeed.cli import app

runner = CliRunner()


class TestCLICommands:
    """Tests for CLI commands (in-memory repositories)."""

    def test_cli_app_exists(self):
        """Test CLI app is defined."""
        assert isinstance(app, typer.Typer)

    def test_feed(self):
        """Test feed lists approved posts with their layout."""
        result = runner.invoke(app, ["feed", "--as-user", "u1"])

        assert result.exit_code == 0, result.stdout
        assert "p7" in result.stdout
        assert "p4" not in result.stdout
        assert "2 columns" in result.stdout
        assert "5 posts" in result.stdout

    def test_feed_with_filters_and_width(self):
        """Test filters and viewport width pick the column count."""
        result = runner.invoke(app, ["feed", "--category", "recipe", "--width", "1300"])

        assert result.exit_code == 0, result.stdout
        assert "p6" in result.stdout
        assert "4 columns" in result.stdout
        assert "1 posts" in result.stdout

    def test_feed_fixed_columns(self):
        result = runner.invoke(app, ["feed", "--columns", "3", "--sort", "hot"])
        assert result.exit_code == 0, result.stdout
        assert "3 columns" in result.stdout

    def test_pending_as_admin(self):
        """Test moderation queue for an admin."""
        result = runner.invoke(app, ["pending", "--as-user", "u_admin"])

        assert result.exit_code == 0, result.stdout
        assert "p8" in result.stdout
        assert "p4" in result.stdout

    def test_pending_denied_for_user(self):
        """Test non-admins get a permission error and exit code 1."""
        result = runner.invoke(app, ["pending", "--as-user", "u1"])

        assert result.exit_code == 1
        assert "PermissionDeniedError" in result.stdout

    def test_pending_anonymous(self):
        result = runner.invoke(app, ["pending"])
        assert result.exit_code == 1
        assert "AuthenticationError" in result.stdout

    def test_review_approve(self):
        """Test approving a pending post."""
        result = runner.invoke(app, ["review", "p4", "--as-user", "u_admin"])

        assert result.exit_code == 0, result.stdout
        assert "approved" in result.stdout

    def test_review_reject_with_feedback(self):
        result = runner.invoke(
            app, ["review", "p8", "--reject", "-f", "Add a time", "--as-user", "u_root"]
        )
        assert result.exit_code == 0, result.stdout
        assert "rejected" in result.stdout

    def test_review_non_pending_post(self):
        """Test reviewing an approved post fails cleanly."""
        result = runner.invoke(app, ["review", "p1", "--as-user", "u_admin"])

        assert result.exit_code == 1
        assert "InvalidTransitionError" in result.stdout

    def test_platform_stats(self):
        result = runner.invoke(app, ["stats", "--as-user", "u_admin"])

        assert result.exit_code == 0, result.stdout
        assert "pending_posts" in result.stdout
        assert "today_stats.new_users" in result.stdout

    def test_platform_stats_denied_for_user(self):
        result = runner.invoke(app, ["stats", "--as-user", "u1"])
        assert result.exit_code == 1
        assert "PermissionDeniedError" in result.stdout

    def test_user_stats(self):
        """Test one user's totals need no admin viewer."""
        result = runner.invoke(app, ["stats", "--user", "u1"])

        assert result.exit_code == 0, result.stdout
        assert "total_likes" in result.stdout
        assert "120" in result.stdout

    def test_config(self):
        """Test config shows settings."""
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "testing" in result.stdout
        assert "in-memory" in result.stdout
        assert "Session Token" in result.stdout
