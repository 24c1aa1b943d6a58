"""Logging configuration with the Hive color palette.

Keeps CLI and server output in the same colors so log lines from either
surface read the same way.
"""

import sys
from typing import TYPE_CHECKING

from loguru import logger


if TYPE_CHECKING:
    from loguru import Record


COLORS = {
    "honey": "#F2A93B",  # Warnings, primary accent
    "leaf": "#6A994E",  # Success, completed
    "wax": "#F7EBD3",  # Primary text
    "comb_muted": "#A39171",  # Secondary text, debug
    "comb_dark": "#5E5240",  # Separators, trace
    "sting": "#BC4B51",  # Error
    "sky": "#5B9BD5",  # Info, identifiers
}

# ANSI reset code
RESET = "\033[0m"


def _log_format(record: "Record") -> str:
    """Generate custom log format string with the Hive palette.

    Creates a colored log format using Loguru color tags. Applies different
    colors based on log level and includes structured extra fields if present.

    Args:
        record: Loguru record containing log metadata, message, and level.

    Returns:
        Formatted string with Loguru color tags for the log message.
    """
    level = record["level"].name

    level_colors = {
        "TRACE": f"<fg {COLORS['comb_dark']}>",
        "DEBUG": f"<fg {COLORS['comb_muted']}>",
        "INFO": f"<fg {COLORS['sky']}>",
        "SUCCESS": f"<fg {COLORS['leaf']}>",
        "WARNING": f"<fg {COLORS['honey']}>",
        "ERROR": f"<fg {COLORS['sting']}>",
        "CRITICAL": f"<fg {COLORS['sting']}><bold>",
    }

    color = level_colors.get(level, f"<fg {COLORS['wax']}>")

    # Loguru uses </> to close any open color tag
    close = "</>"

    # Format: timestamp | level | module | message [extra]
    fmt = (
        f"<fg {COLORS['comb_muted']}>{{time:HH:mm:ss}}{close}"
        f" <fg {COLORS['comb_dark']}>│{close} "
        f"{color}{{level: <8}}{close}"
        f"<fg {COLORS['comb_dark']}>│{close} "
        f"<fg {COLORS['comb_muted']}>{{name}}{close}"
        f"<fg {COLORS['comb_dark']}>:{close}"
        f"<fg {COLORS['wax']}>{{message}}{close}"
    )

    extra = record["extra"]
    if extra:
        extra_str = " ".join(f"{k}={v!r}" for k, v in extra.items())
        # Escape braces to prevent Loguru format string injection
        extra_str = extra_str.replace("{", "{{").replace("}", "}}")
        # Escape angle brackets so values are not parsed as color tags
        extra_str = extra_str.replace("<", r"\<")
        fmt += f" <fg {COLORS['comb_muted']}>│ {extra_str}{close}"

    fmt += "\n"

    if record["exception"]:
        fmt += "{exception}\n"

    return fmt


def configure_logging(level: str = "INFO") -> None:
    """Configure loguru logging with the Hive palette.

    Removes default handler and adds custom formatted handler with
    structured field support.

    Args:
        level: Minimum log level to display (e.g., "DEBUG", "INFO", "WARNING").
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format=_log_format,
        colorize=True,
    )


def _ansi_color(hex_color: str) -> str:
    """Convert hex color code to ANSI 24-bit escape sequence.

    Args:
        hex_color: Hex color string with or without # prefix (e.g., "#F2A93B").

    Returns:
        ANSI escape code for 24-bit RGB foreground color.
    """
    hex_color = hex_color.lstrip("#")
    r, g, b = int(hex_color[0:2], 16), int(hex_color[2:4], 16), int(hex_color[4:6], 16)
    return f"\033[38;2;{r};{g};{b}m"


def log_server_startup(host: str, port: int, database_path: str, version: str) -> None:
    """Log server startup information with Hive-styled formatting.

    Args:
        host: Server bind host address.
        port: Server bind port number.
        database_path: Path to SQLite database file.
        version: Application version string.
    """
    honey = _ansi_color(COLORS["honey"])
    leaf = _ansi_color(COLORS["leaf"])
    sky = _ansi_color(COLORS["sky"])
    muted = _ansi_color(COLORS["comb_muted"])

    config_lines = [
        f"  {muted}Version:{RESET}  {honey}v{version}{RESET}",
        f"  {muted}Server:{RESET}   {sky}http://{host}:{port}{RESET}",
        f"  {muted}Database:{RESET} {leaf}{database_path}{RESET}",
        "",
    ]
    sys.stderr.write("\n".join(config_lines))
    sys.stderr.flush()
