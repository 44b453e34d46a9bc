"""Load cellrepl configuration"""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Union

import toml

from .config_classes import (
    DEFAULT_PLATFORM_ID,
    AgentConfig,
    ClientConfig,
    PlatformConfig,
)
from .exceptions import UserResolvableError

LOG = logging.getLogger(__name__)

CELLREPL_DIST_DATA = Path(__file__).parent / "dist_data"
DEFAULT_CONFIG_FILEPATH = Path("cellrepl.toml")


class ConfigError(UserResolvableError):
    """Error loading configuration"""


LAST_LOADED = None


def default_platforms() -> Dict[str, PlatformConfig]:
    """The running interpreter is always a target"""
    return {DEFAULT_PLATFORM_ID: PlatformConfig()}


@dataclass
class Config:
    root: Path
    config_file: Union[Path, None]
    client: ClientConfig = field(default_factory=ClientConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    platforms: Dict[str, PlatformConfig] = field(default_factory=default_platforms)


def get_last_loaded() -> Config:
    return LAST_LOADED


def _section(cls, data: dict, name: str, config_file: Path):
    try:
        return cls(**data)
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"Bad [{name}] section in {config_file}: {exc}",
            "Check the option names and values against `cellrepl init' output.",
        )


def load(args: dict) -> Config:
    """Load the configuration, falling back to defaults"""
    explicit = args.get("--config") not in (None, str(DEFAULT_CONFIG_FILEPATH))
    config_file = Path(args["--config"]) if args.get("--config") else DEFAULT_CONFIG_FILEPATH

    try:
        data = toml.load(config_file)
    except FileNotFoundError:
        if explicit:
            raise ConfigError(
                f"{config_file} not found",
                "Either create it manually, or use `cellrepl init' to generate a new one.",
            )
        LOG.info("No %s, using defaults", config_file)
        data = {}
        config_file = None
    except toml.TomlDecodeError as exc:
        raise ConfigError(f"Can't parse {config_file}: {exc}", "Is it valid TOML?")

    platforms = default_platforms()
    for platform_id, values in data.pop("platforms", {}).items():
        platforms[platform_id] = _section(
            PlatformConfig, values, f"platforms.{platform_id}", config_file
        )

    cfg = Config(
        root=(config_file.parent if config_file else Path(".")).resolve(),
        config_file=config_file,
        client=_section(ClientConfig, data.pop("client", {}), "client", config_file),
        agent=_section(AgentConfig, data.pop("agent", {}), "agent", config_file),
        platforms=platforms,
    )

    if data:
        LOG.warning("Ignoring unknown config sections: %s", ", ".join(data))

    if args.get("--settle") is not None:
        try:
            cfg.client.settle_delay = float(args["--settle"])
        except ValueError:
            raise ConfigError(
                f"Bad --settle value: {args['--settle']}", "Give a number of seconds."
            )

    global LAST_LOADED
    LAST_LOADED = cfg
    return LAST_LOADED


def create_skeleton(dest="."):
    """Create a skeleton (template) config file in the given dir"""
    filename = Path(dest) / DEFAULT_CONFIG_FILEPATH
    if filename.exists():
        raise UserResolvableError(
            f"{filename} already exists", "Cowardly refusing to clobber it...",
        )
    shutil.copyfile(CELLREPL_DIST_DATA / DEFAULT_CONFIG_FILEPATH, filename)
    return filename
