"""Target platforms - the interpreters that can host an agent"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from .config import Config

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetPlatform:
    id: str
    language: str
    executable: str

    @property
    def available(self) -> bool:
        return resolve_executable(self.executable) is not None


def resolve_executable(executable: str) -> Optional[str]:
    """Full path of EXECUTABLE, or None if it can't be run"""
    found = shutil.which(executable)
    if found:
        return found
    path = Path(executable)
    if path.is_file():
        return str(path)
    return None


def configured_platforms(cfg: Config) -> List[TargetPlatform]:
    return [
        TargetPlatform(id=platform_id, language=p.language, executable=p.executable)
        for platform_id, p in cfg.platforms.items()
        if p.enabled
    ]


def installed_platforms(cfg: Config) -> List[TargetPlatform]:
    """Configured platforms that can actually be started"""
    installed = []
    for platform in configured_platforms(cfg):
        if platform.available:
            installed.append(platform)
        else:
            LOG.info("Platform %s unavailable: %s not found", platform.id, platform.executable)
    return installed


def find_platform(
    cfg: Config, wanted: Iterable[str] = (), language: str = None
) -> Optional[TargetPlatform]:
    """Pick the first installed platform in WANTED, or the first at all

    With LANGUAGE, only platforms hosting that language are considered.

    """
    wanted = list(wanted)
    installed = installed_platforms(cfg)
    if language:
        installed = [p for p in installed if p.language.lower() == language.lower()]
    if not wanted:
        return installed[0] if installed else None
    for platform_id in wanted:
        for platform in installed:
            if platform.id == platform_id:
                return platform
    LOG.info("None of %s installed (have: %s)", wanted, [p.id for p in installed])
    return None
