"""Test the cellrepl command line tool"""
import sys
from pathlib import Path
from subprocess import PIPE, Popen

from cellrepl.cli.main import __doc__ as USAGE
from docopt import docopt

EXAMPLES_SUBDIR = Path(__file__).parent / "examples"


def cellrepl_cli(*args, stdin="", cwd=None):
    """Run cellrepl cli command line and return (decoded) outputs"""
    p = Popen(
        [sys.executable, "-m", "cellrepl.cli.main", "--no-colours", "--settle=0", *map(str, args)],
        stdout=PIPE,
        stderr=PIPE,
        stdin=PIPE,
        cwd=cwd,
    )
    stdout, stderr = p.communicate(stdin.encode(), timeout=60)
    return stdout.decode(), stderr.decode(), p.returncode


def test_missing_workbook(tmp_path):
    stdout, stderr, code = cellrepl_cli(tmp_path / "missing.workbook")
    assert code == 1
    assert "Error: File does not exist" in stderr


def test_replay():
    stdout, stderr, code = cellrepl_cli(EXAMPLES_SUBDIR / "hello.workbook")
    assert code == 0
    assert 'python> print("Hello World!")\nHello World!\n' in stdout
    assert "int: 42" in stdout
    assert "Ready" in stdout


def test_replay_stops_on_exception():
    stdout, stderr, code = cellrepl_cli(EXAMPLES_SUBDIR / "failing.workbook")
    assert code == 0
    assert "before" in stdout
    assert "ZeroDivisionError" in stdout
    assert "Error: An exception was thrown while evaluating cell" in stdout
    assert "never printed" not in stdout


def test_interactive():
    stdout, stderr, code = cellrepl_cli(stdin="def f(y):\n    return y * 7\n\nf(6)\n")
    assert code == 0
    assert "int: 42" in stdout


def test_platforms():
    stdout, stderr, code = cellrepl_cli("platforms")
    assert code == 0
    assert "python" in stdout


def test_init(tmp_path):
    stdout, stderr, code = cellrepl_cli("init", cwd=tmp_path)
    assert code == 0
    assert (tmp_path / "cellrepl.toml").exists()
    stdout, stderr, code = cellrepl_cli("init", cwd=tmp_path)
    assert code == 1


def test_options_accepted_by_every_command():
    args = docopt(USAGE, argv=["--settle=0", "-p", "python", "platforms"])
    assert args["platforms"]
    assert args["WORKBOOK"] is None
    assert args["--platform"] == "python"
    args = docopt(USAGE, argv=["-p", "python", "init"])
    assert args["init"]
    args = docopt(USAGE, argv=["--settle=0.1", "book.workbook"])
    assert args["WORKBOOK"] == "book.workbook"
    assert args["--settle"] == "0.1"


def test_platform_option_with_command():
    stdout, stderr, code = cellrepl_cli("-p", "python", "platforms")
    assert code == 0
    assert "Platform" in stdout
