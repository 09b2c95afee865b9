import os
import sys
from pathlib import Path

from loguru import logger


def setup_logger(
    *, json_logs: bool = False, level: str = "INFO", log_dir: str | Path = "logs"
) -> None:
    """Configure loguru for holder scans.

    Console goes to stderr so stdout stays clean for the JSON report;
    level from LOG_LEVEL env (default: INFO). The file sink keeps DEBUG
    so a bad scan can be replayed from the log.
    """
    console_level = os.getenv("LOG_LEVEL", level).upper()
    logger.remove()
    logger.configure(extra={"contract": "-"})

    if json_logs:
        logger.add(sys.stderr, serialize=True, level=console_level)
    else:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<magenta>{extra[contract]:.12}</magenta> | "
                "<level>{message}</level>"
            ),
            level=console_level,
            colorize=True,
        )

    logger.add(
        Path(log_dir) / "holder_scan_{time:YYYY-MM-DD}.log",
        rotation="20 MB",
        retention="7 days",
        compression="gz",
        level="DEBUG",
        serialize=json_logs,
    )


def scan_context(contract: str):
    """Tag every record logged inside the block with the scanned contract."""
    return logger.contextualize(contract=contract.strip().lower())
