"""
Utility functions for the movie import pipeline.

Provides logging setup, progress bars, batching, and display helpers.
"""

import logging
import sys
import time
from datetime import datetime
from itertools import islice
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, TypeVar

from tqdm import tqdm

T = TypeVar("T")


def setup_logger(
    name: str,
    log_dir: Optional[Path] = None,
    level: int = logging.INFO,
    console_output: bool = True,
) -> logging.Logger:
    """
    Set up a logger with file and optional console handlers.

    Args:
        name: Logger name (used for both logger and log file)
        log_dir: Directory for log files (defaults to ./logs)
        level: Logging level
        console_output: Whether to also log to console

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if log_dir is None:
        log_dir = Path.cwd() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f"{name}_{datetime.now().strftime('%Y%m%d')}.log"
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)  # Only warnings and above to console
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def progress_bar(
    iterable: Iterable[T],
    total: Optional[int] = None,
    desc: str = "Processing",
    unit: str = "items",
    disable: bool = False,
) -> Iterator[T]:
    """
    Wrap an iterable with a progress bar.

    Args:
        iterable: Items to iterate over
        total: Total number of items (if known)
        desc: Description to show
        unit: Unit name for items
        disable: If True, disable progress bar output

    Yields:
        Items from the iterable
    """
    return tqdm(
        iterable,
        total=total,
        desc=desc,
        unit=unit,
        disable=disable,
        ncols=100,
    )


def batch_iterator(items: Iterable[T], batch_size: int) -> Iterator[List[T]]:
    """
    Iterate over any iterable in lists of at most batch_size items.

    Works on generators, so a CSV reader is never fully materialized.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    iterator = iter(items)
    while True:
        batch = list(islice(iterator, batch_size))
        if not batch:
            return
        yield batch


def count_batches(total_items: int, batch_size: int) -> int:
    """Number of batches needed for total_items."""
    return (total_items + batch_size - 1) // batch_size


def format_number(n: int) -> str:
    """Format number with commas for readability."""
    return f"{n:,}"


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


def truncate_string(s: str, max_length: int = 50, suffix: str = "...") -> str:
    """Truncate string to max length, adding suffix if truncated."""
    if len(s) <= max_length:
        return s
    return s[: max_length - len(suffix)] + suffix


def print_header(text: str, char: str = "=", width: int = 60) -> None:
    """Print a header with decorative lines."""
    print(char * width)
    print(text.center(width))
    print(char * width)


def print_status_table(data: dict, title: str = "Status") -> None:
    """Print a formatted status table."""
    print(f"\n{title}")
    print("-" * 40)
    max_key_len = max(len(str(k)) for k in data.keys()) if data else 10
    for key, value in data.items():
        print(f"  {key:<{max_key_len + 2}}: {value}")
    print()


def confirm_action(message: str, default: bool = False) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Message to display
        default: Default value if user presses Enter

    Returns:
        True if confirmed, False otherwise
    """
    default_str = "Y/n" if default else "y/N"
    response = input(f"{message} [{default_str}]: ").strip().lower()

    if not response:
        return default
    return response in ("y", "yes")


class Timer:
    """Context manager for timing operations."""

    def __init__(self, description: str = "Operation"):
        self.description = description
        self.start_time: float = 0
        self.elapsed: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.time()
        return self

    def __exit__(self, *args) -> None:
        self.elapsed = time.time() - self.start_time

    def __str__(self) -> str:
        return f"{self.description}: {format_duration(self.elapsed)}"
