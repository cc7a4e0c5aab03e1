"""Shared utilities for trainrunner."""

from trainrunner.utils.logging import configure_logging
from trainrunner.utils.summary import format_run_summary
from trainrunner.utils.working_dir import prepare_working_dir, write_resolved_config

__all__ = [
    "configure_logging",
    "format_run_summary",
    "prepare_working_dir",
    "write_resolved_config",
]
