"""Where the bridge reads its user `.env` and writes rotating log files.

Both follow platform conventions (XDG on Linux). Nothing is created here;
`build_log_config` makes the log directory when a file handler is requested.
"""

from __future__ import annotations

from pathlib import Path

from platformdirs import PlatformDirs

APP_NAME = "copilot-bridge"
ENV_FILE_NAME = ".env"


def _dirs() -> PlatformDirs:
    # Built per call so XDG variables set after import are honoured.
    return PlatformDirs(appname=APP_NAME, appauthor=False)


def config_dir() -> Path:
    return _dirs().user_config_path


def env_file() -> Path:
    return config_dir() / ENV_FILE_NAME


def log_dir() -> Path:
    return _dirs().user_log_path
