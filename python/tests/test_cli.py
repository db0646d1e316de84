"""
Tests for the minipy command line.
"""

from typer.testing import CliRunner

from mcptools.cli import app

runner = CliRunner()


class TestRunCommand:
    """Tests for `minipy run`."""

    def test_run_from_stdin(self):
        """Test running a script read from standard input."""
        result = runner.invoke(app, ["run"], input="print(1+2)\n")
        assert result.exit_code == 0
        assert result.output.strip() == "3"

    def test_run_from_file(self, tmp_path):
        """Test running a script file."""
        script = tmp_path / "script.py"
        script.write_text("for i in range(2):\n    print(i)\n")
        result = runner.invoke(app, ["run", str(script)])
        assert result.exit_code == 0
        assert result.output.strip() == "0\n1"

    def test_run_error_exits_nonzero(self):
        """Test that script errors exit with status 1."""
        result = runner.invoke(app, ["run"], input="foo()\n")
        assert result.exit_code == 1

    def test_run_sys_exit_code(self):
        """Test that sys.exit() sets the exit status."""
        result = runner.invoke(app, ["run"], input="import sys\nsys.exit(4)\n")
        assert result.exit_code == 4
