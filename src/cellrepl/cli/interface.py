"""CLI UI related functions"""

import contextlib
import logging
import sys
from traceback import format_exception, format_stack

import colorful as cf
from texttable import Texttable
from yaspin import yaspin
from yaspin.spinners import Spinners

from ..session.events import (
    CapturedOutputSegment,
    CellResult,
    Diagnostic,
    DiagnosticSeverity,
    SessionEvent,
)
from . import styling

TICK = "✔"
CROSS = "✘"

# TODO light/dark versions
UI_COLORS = {
    # --
    "teal": "#027777",
    "grey": "#777777",
    "silver": "#AAAAAA",
    "magenta": "#9510ED",
    "red": "#991010",
    "amber": "#B58900",
    "cyan": "#2AA1B3",
}

# Palette names must resolve even before init() has run
cf.update_palette(UI_COLORS)


# Flags that modify interface displays
QUIET = False
VERBOSE = False


def init(args):
    """Initialise the UI, including logging"""

    if args["--vverbose"]:
        level = "DEBUG"
    elif args["--verbose"]:
        level = "INFO"
    else:
        level = None

    global QUIET
    global VERBOSE
    QUIET = args["--quiet"]
    VERBOSE = args["--verbose"] or args["--vverbose"]

    root_logger = logging.getLogger("cellrepl")

    if not args["--no-colours"]:
        import coloredlogs

        cf.use_true_colors()
        cf.use_palette(UI_COLORS)
        cf.update_palette(UI_COLORS)
        styling.enable()
        if level:
            coloredlogs.install(
                fmt="[%(asctime)s.%(msecs)03d] %(name)-25s %(message)s",
                datefmt="%H:%M:%S",
                level=level,
                logger=root_logger,
            )
    else:
        cf.disable()
        styling.disable()
        if level:
            handler = logging.StreamHandler()
            handler.setFormatter(
                logging.Formatter("[%(asctime)s] %(name)-25s %(message)s", "%H:%M:%S")
            )
            root_logger.addHandler(handler)
            root_logger.setLevel(level)


## String colour modifiers


def dim(string):
    return cf.grey(string)


def good(string):
    return cf.bold_teal(string)


def bad(string):
    return cf.bold_red(string)


def warn(string):
    return cf.amber(string)


## And printing messages


def info(msg):
    if not QUIET:
        print(msg)


## graceful exits


def exit_problem(problem: str, suggested_fix: str):
    """Exit because of a user-correctable problem"""
    print("\n" + bad(problem))
    if suggested_fix:
        print(suggested_fix)
    if not suggested_fix.endswith("\n"):
        print("")
    sys.exit(1)


def exit_bug(msg, *, data=None, traceback=None):
    """Something broke unexpectedly while running"""
    print(bad("\nUnexpected error 💔.\n" + str(msg)))

    exc_type, exc_value, exc_traceback = sys.exc_info()

    if exc_type:
        traceback = format_exception(exc_type, exc_value, exc_traceback)
    elif traceback is None:
        traceback = format_stack(limit=4)

    if traceback:
        print("\n" + "".join(traceback))

    if data:
        print(f"Associated Data:\n{data}")

    sys.exit(1)


## UI elements


class DummySpinner:
    """Something that quacks like yaspin, but does nothing"""

    text = ""

    def write(*args):
        pass

    def ok(*args):
        pass

    def fail(*args):
        pass


def spin(text):
    if QUIET or VERBOSE or not sys.stdout.isatty():
        return contextlib.nullcontext(DummySpinner())
    else:
        return yaspin(Spinners.dots, text=str(text))


## Cell rendering. Everything here runs on the scheduler's pump thread.


def write_prompt(language: str, secondary_prompt=False, stream=sys.stdout):
    prompt = language
    if secondary_prompt:
        prompt = " " * len(prompt)
    stream.write(styling.prompt(f"{prompt}> "))
    stream.flush()


def render_session_event(event: SessionEvent, stream=sys.stdout):
    stream.write(str(cf.cyan(event.kind.value)) + "\n")


def render_output(output: CapturedOutputSegment, stream=sys.stdout):
    if output.file_descriptor == 2:
        stream.write(str(cf.red(output.value)))
    elif output.file_descriptor == 1:
        stream.write(str(cf.silver(output.value)))
    else:
        stream.write(output.value)
    stream.flush()


def render_result(result: CellResult, stream=sys.stdout):
    # Only the first representation is shown. It's repr() for the agent
    representation = result.representations[0] if result.representations else "None"
    stream.write(str(cf.magenta(result.type_name + ": ")))
    stream.write(representation + "\n")


def render_error(message: str, stream=sys.stdout):
    stream.write(str(cf.red("Error: ")) + message + "\n")


def render_diagnostic(diagnostic: Diagnostic, stream=sys.stdout):
    if diagnostic.severity == DiagnosticSeverity.WARNING:
        stream.write(str(warn(f"warning ({diagnostic.id}): ")))
    elif diagnostic.severity == DiagnosticSeverity.ERROR:
        stream.write(str(cf.red(f"error ({diagnostic.id}): ")))
    else:
        return

    line, column = diagnostic.span
    stream.write(f"({line},{column}): {diagnostic.message}\n")


def print_platforms(platforms, stream=sys.stdout):
    """Print a table of target platforms"""
    table = Texttable(max_width=100)
    alignment = ["l", "l", "l", "c"]
    table.set_cols_align(alignment)
    table.set_header_align(alignment)
    table.header(["Platform", "Language", "Executable", "Available"])
    table.set_deco(Texttable.HEADER)
    for platform in platforms:
        table.add_row(
            [platform.id, platform.language, platform.executable, TICK if platform.available else CROSS]
        )
    stream.write("\n" + table.draw() + "\n\n")


def render_warning(message: str, stream=sys.stdout):
    stream.write(str(warn("Warning: ")) + message + "\n")
