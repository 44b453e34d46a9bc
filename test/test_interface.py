"""Test CLI UI helpers"""
import io

import pytest
from cellrepl.cli import interface as ui
from cellrepl.session.events import CapturedOutputSegment, CellResult

from utils import plain_ui


def setup_module(module):
    plain_ui()


def test_exit_bug(capsys):
    with pytest.raises(SystemExit) as exc:
        ui.exit_bug("it broke", data="details")
    assert exc.value.code == 1
    out = capsys.readouterr().out
    assert "Unexpected error" in out
    assert "it broke" in out
    assert "Associated Data:\ndetails" in out
    assert "http" not in out


def test_exit_problem(capsys):
    with pytest.raises(SystemExit) as exc:
        ui.exit_problem("Bad thing", "Do this instead")
    assert exc.value.code == 1
    assert "Bad thing\nDo this instead\n" in capsys.readouterr().out


def test_colour_helpers_plain():
    for helper in [ui.dim, ui.good, ui.bad, ui.warn]:
        assert str(helper("text")) == "text"


def test_prompts():
    stream = io.StringIO()
    ui.write_prompt("python", stream=stream)
    ui.write_prompt("python", secondary_prompt=True, stream=stream)
    assert stream.getvalue() == "python>       > "


def test_render_output_and_result():
    stream = io.StringIO()
    ui.render_output(CapturedOutputSegment("A", 2, "oops\n"), stream)
    ui.render_result(CellResult("A", "NoneType"), stream)
    assert stream.getvalue() == "oops\nNoneType: None\n"
