"""cellrepl configuration data, usually stored in cellrepl.toml"""

import sys
from dataclasses import dataclass

# Constants
DEFAULT_SETTLE_DELAY = 0.25  # seconds
DEFAULT_STARTUP_TIMEOUT = 10.0  # seconds
DEFAULT_PLATFORM_ID = "python"
DEFAULT_LANGUAGE = "python"


@dataclass(unsafe_hash=True)
class ClientConfig:
    # Pause after each evaluation, so results that trail the evaluation reply
    # land before the next prompt.
    settle_delay: float = DEFAULT_SETTLE_DELAY
    show_session_events: bool = True

    def __post_init__(self):
        self.settle_delay = float(self.settle_delay)
        if self.settle_delay < 0:
            raise ValueError("settle_delay must not be negative")


@dataclass(unsafe_hash=True)
class AgentConfig:
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT
    install_packages: bool = False

    def __post_init__(self):
        self.startup_timeout = float(self.startup_timeout)


@dataclass(unsafe_hash=True)
class PlatformConfig:
    executable: str = sys.executable
    language: str = DEFAULT_LANGUAGE
    enabled: bool = True
