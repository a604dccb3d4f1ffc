"""Helpers shared by the CLI commands."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import click

from ashen.core.errors import AshenError
from ashen.core.output import notify_error
from ashen.fix.engine import BatchFixManager

logger = logging.getLogger("ashen.cli")


def get_manager() -> BatchFixManager:
    return BatchFixManager(Path.cwd())


@contextmanager
def reported(action: str) -> Iterator[None]:
    """Turn an AshenError into a red notification, a log line and exit code 1."""
    try:
        yield
    except AshenError as e:
        logger.error("%s failed: %s", action, e, exc_info=logger.isEnabledFor(logging.DEBUG))
        notify_error(f"{action} failed: {e}")
        raise click.exceptions.Exit(1)
