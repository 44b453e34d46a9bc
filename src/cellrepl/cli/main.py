"""cellrepl.

Usage:
  cellrepl [options] init
  cellrepl [options] platforms
  cellrepl [options] [WORKBOOK]
  cellrepl --version
  cellrepl -h | --help

Commands:
  init       Create a skeleton cellrepl.toml in the current directory.
  platforms  List the configured target platforms.
  default    Replay WORKBOOK, or start an interactive REPL without one.

Options:
  --version       Show version.
  -h, --help      Show this screen.
  -q, --quiet     Be quiet.
  -v, --verbose   Be verbose.
  -V, --vverbose  Be very verbose.
  --no-colours    Disable colours in CLI output.

  --config=CONFIG  Config file to use  [default: cellrepl.toml]

  -p PLATFORM, --platform=PLATFORM  Target platform to evaluate on
  --settle=SECONDS                  Delay after each evaluation
"""

import logging
import sys

from docopt import docopt

from .. import __version__, config
from ..client.entry import repl_main, workbook_main
from ..exceptions import UnexpectedError, UserResolvableError
from ..platforms import configured_platforms
from . import interface as ui
from .interface import TICK, exit_bug, exit_problem, good, init

LOG = logging.getLogger(__name__)


def _init(args) -> int:
    filename = config.create_skeleton()
    print("\n" + TICK + " Created " + str(good(filename)))
    print("\nDone. Edit it to add target platforms.")
    return 0


def _platforms(args) -> int:
    cfg = config.load(args)
    ui.print_platforms(configured_platforms(cfg))
    return 0


def _run(args) -> int:
    cfg = config.load(args)
    if args["WORKBOOK"]:
        return workbook_main(args["WORKBOOK"], cfg, args["--platform"])
    ui.info(ui.dim(f"cellrepl {__version__}. End input (Ctrl-D) to quit."))
    return repl_main(cfg, args["--platform"])


def dispatch(args) -> int:
    if args["init"]:
        return _init(args)
    elif args["platforms"]:
        return _platforms(args)
    else:
        return _run(args)


def main():
    args = docopt(__doc__, version=__version__)
    init(args)
    LOG.debug("CLI args: %s", args)

    try:
        code = dispatch(args)
    except UserResolvableError as exc:
        exit_problem(exc.msg, exc.suggested_fix)
    except UnexpectedError as exc:
        exit_bug(str(exc))
    except KeyboardInterrupt:
        print()
        sys.exit(130)

    sys.exit(code)


if __name__ == "__main__":
    main()
