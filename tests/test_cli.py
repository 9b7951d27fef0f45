"""Tests for the CLI entry point."""

from click.testing import CliRunner

from codex_profiles.cli import cli


class TestCLI:
    def test_help_lists_commands(self):
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("save", "load", "list", "status", "delete"):
            assert command in result.output
        assert "codex-profiles status --all" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_save_then_list(self, paths, write_auth):
        write_auth()
        runner = CliRunner()

        saved = runner.invoke(cli, ["save", "--label", "work"])
        listed = runner.invoke(cli, ["list"])

        assert saved.exit_code == 0
        assert "Saved profile [PLUS] alice@example.com (work)" in saved.output
        assert listed.exit_code == 0
        assert "[PLUS] alice@example.com (work)" in listed.output
        assert paths.profile_path("alice@example.com-plus").is_file()

    def test_plain_output_has_no_indentation(self, paths, write_auth):
        write_auth()

        result = CliRunner().invoke(cli, ["--plain", "save"])

        assert result.exit_code == 0
        assert "\n✅ Saved profile [PLUS] alice@example.com\n" in result.output

    def test_failure_exits_non_zero(self, paths):
        result = CliRunner().invoke(cli, ["save"])

        assert result.exit_code == 1
        assert "Error: Not logged in. Run `codex login`." in result.output

    def test_load_requires_terminal_without_label(self, paths, write_auth):
        write_auth()
        runner = CliRunner()
        runner.invoke(cli, ["save"])

        result = runner.invoke(cli, ["load"])

        assert result.exit_code == 1
        assert "Load selection requires a TTY." in result.output

    def test_delete_with_label_and_yes(self, paths, write_auth):
        write_auth()
        runner = CliRunner()
        runner.invoke(cli, ["save", "--label", "work"])

        result = runner.invoke(cli, ["delete", "--label", "work", "--yes"])

        assert result.exit_code == 0
        assert "Deleted profile" in result.output
        assert not paths.profile_path("alice@example.com-plus").exists()

    def test_delete_without_profiles_succeeds(self, paths):
        result = CliRunner().invoke(cli, ["delete", "--yes"])

        assert result.exit_code == 0
        assert "No saved profiles." in result.output

    def test_show_errors_requires_all(self, paths):
        result = CliRunner().invoke(cli, ["status", "--show-errors"])

        assert result.exit_code == 2
        assert "--show-errors requires --all" in result.output
