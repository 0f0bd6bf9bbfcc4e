"""Root logger setup driven by the profile's ``logging`` settings section.

The CLI calls ``setup_logging`` once per invocation, after the profile is
selected, so ``BUDGETFLOW_LOGGING__LEVEL`` and the logging values in
``.env.{profile}`` decide the console level and whether a rotating log file
is written.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler

from ..config import LoggingConfig, get_settings

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CLI_FORMAT = "%(message)s"

# Third-party loggers held at WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler")


def setup_logging(
    config: LoggingConfig | None = None,
    cli_mode: bool = False,
    verbose: bool = False,
    force: bool = False,
) -> None:
    """Install console and optional rotating-file handlers on the root logger.

    Args:
        config: Logging section to apply. Defaults to the current profile's
            ``get_settings().logging``.
        cli_mode: Print bare messages on the console instead of timestamped lines
        verbose: Log at DEBUG regardless of the configured level
        force: Replace handlers installed by an earlier call

    Raises:
        ValueError: If ``config`` is omitted and the profile's settings are invalid
    """
    if config is None:
        config = get_settings().logging

    level = logging.DEBUG if verbose else getattr(logging, config.level)

    # stderr keeps command output on stdout clean
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(CLI_FORMAT if cli_mode else FILE_FORMAT))
    handlers: list[logging.Handler] = [console]

    if config.log_to_file:
        config.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            config.log_file_path,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        rotating.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(rotating)

    logging.basicConfig(level=level, handlers=handlers, force=force)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
