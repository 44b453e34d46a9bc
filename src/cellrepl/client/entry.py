"""Entry points for the two client modes

Setup problems are reported and turned into exit code 1 before the scheduler
is touched. After that, the mode runs to completion on the calling thread.

"""

import logging
import sys
from pathlib import Path

from ..cli import interface as ui
from ..config import Config
from ..platforms import TargetPlatform, find_platform
from ..scheduler.runqueue import Scheduler
from ..scheduler.task import run
from ..session.interface import (
    EvaluationEnvironment,
    LanguageDescription,
    SessionDescription,
)
from ..session.local import LocalSession
from ..workbook import WorkbookError, load_workbook
from .driver import ReplDriver

LOG = logging.getLogger(__name__)


def describe(platform: TargetPlatform, language: str) -> SessionDescription:
    return SessionDescription(
        language=LanguageDescription(language),
        target_platform_id=platform.id,
        environment=EvaluationEnvironment(Path.cwd()),
    )


def _make_driver(cfg, platform, stream, read_line, scheduler, session_factory):
    session = session_factory(platform, cfg.agent)
    return ReplDriver(
        session,
        scheduler,
        stream=stream,
        read_line=read_line,
        settle_delay=cfg.client.settle_delay,
        show_session_events=cfg.client.show_session_events,
    )


async def _hosted(driver: ReplDriver, coro):
    try:
        return await coro
    finally:
        driver.close()


def repl_main(
    cfg: Config,
    platform_id: str = None,
    *,
    stream=sys.stdout,
    error_stream=sys.stderr,
    read_line=None,
    scheduler=None,
    session_factory=LocalSession,
) -> int:
    """Run the interactive REPL. Returns the exit code"""
    platform = find_platform(cfg, [platform_id] if platform_id else [])
    if platform is None:
        ui.render_error("No target platforms could be found", error_stream)
        return 1

    scheduler = scheduler or Scheduler()
    driver = _make_driver(cfg, platform, stream, read_line, scheduler, session_factory)
    return run(_hosted(driver, driver.repl(describe(platform, platform.language))), scheduler)


def workbook_main(
    path,
    cfg: Config,
    platform_id: str = None,
    *,
    stream=sys.stdout,
    error_stream=sys.stderr,
    scheduler=None,
    session_factory=LocalSession,
) -> int:
    """Replay a workbook. Returns the exit code"""
    path = Path(path)
    if not path.exists():
        ui.render_error(f"File does not exist: {path}", error_stream)
        return 1

    try:
        workbook = load_workbook(path)
    except WorkbookError as exc:
        ui.render_error(exc.msg, error_stream)
        return 1

    wanted = [platform_id] if platform_id else workbook.platforms
    platform = find_platform(cfg, wanted, language=workbook.language)
    if platform is None:
        ui.render_error(
            f"No target platform can run {path} ({workbook.language}"
            + (f", wants {', '.join(wanted)})" if wanted else ")"),
            error_stream,
        )
        return 1

    scheduler = scheduler or Scheduler()
    driver = _make_driver(cfg, platform, stream, None, scheduler, session_factory)
    description = describe(platform, workbook.language)
    return run(_hosted(driver, driver.play_workbook(workbook, description)), scheduler)
