"""
Structured logging for jobmatch.

Console and daily file outputs with keyword context appended as JSON,
plus counters for catalog resolution and compatibility analysis. Catalog
batches resolve on worker threads, so counters are updated under a lock.
"""

import json
import logging
import sys
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from time import perf_counter
from typing import Dict, Optional

RESOLUTION_OUTCOMES = ("name", "alias", "created")

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(threadName)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _empty_metrics() -> Dict:
    return {
        "resolutions": 0,
        "name_hits": 0,
        "alias_hits": 0,
        "skills_created": 0,
        "creation_races": 0,
        "merges": 0,
        "analyses": 0,
        "analysis_failures": 0,
        "analysis_seconds": 0.0,
        "errors_by_type": {},
    }


class StructuredLogger:
    """
    Logger shared by the catalog, ingestor and analyzer.

    Console output goes to stderr so command output on stdout stays
    machine-readable.
    """

    def __init__(
        self,
        name: str = "jobmatch",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for daily log files (default: logs/)
            enable_file: Write everything down to DEBUG to jobmatch_YYYYMMDD.log
            enable_console: Write records at ``level`` and above to stderr
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if enable_file else getattr(logging, level.upper()))
        self.logger.handlers.clear()
        self.logger.propagate = False

        self._lock = threading.Lock()
        self.metrics = _empty_metrics()
        self.log_file: Optional[Path] = None

        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
            self.logger.addHandler(console_handler)

        if enable_file:
            log_dir = log_dir or Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)
            self.log_file = log_dir / f"jobmatch_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
            self.logger.addHandler(file_handler)

    def debug(self, message: str, **context):
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, **context):
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context):
        self._log(logging.WARNING, message, context)

    def error(self, message: str, **context):
        self._log(logging.ERROR, message, context)

    def critical(self, message: str, **context):
        self._log(logging.CRITICAL, message, context)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        # stacklevel points %(lineno)d at the caller of debug()/info()/...
        self.logger.log(level, message, stacklevel=3)

    # Counters

    def _bump(self, key: str, amount=1):
        with self._lock:
            self.metrics[key] += amount

    def record_resolution(self, outcome: str):
        """
        Count one resolved skill mention.

        Args:
            outcome: 'name' or 'alias' for a catalog hit, 'created' for a new skill
        """
        if outcome not in RESOLUTION_OUTCOMES:
            raise ValueError(f"Unknown resolution outcome: {outcome!r}")
        with self._lock:
            self.metrics["resolutions"] += 1
            key = "skills_created" if outcome == "created" else f"{outcome}_hits"
            self.metrics[key] += 1

    def record_creation_race(self):
        """Count a lost find-or-create race that fell back to the winner's row."""
        self._bump("creation_races")

    def record_merge(self):
        self._bump("merges")

    def record_analysis(self, seconds: float = 0.0):
        with self._lock:
            self.metrics["analyses"] += 1
            self.metrics["analysis_seconds"] += seconds

    def record_analysis_failure(self, error_type: str):
        with self._lock:
            self.metrics["analysis_failures"] += 1
            errors = self.metrics["errors_by_type"]
            errors[error_type] = errors.get(error_type, 0) + 1

    @contextmanager
    def timed(self):
        """Yield a dict whose 'seconds' key is filled in when the block exits."""
        elapsed = {"seconds": 0.0}
        start = perf_counter()
        try:
            yield elapsed
        finally:
            elapsed["seconds"] = perf_counter() - start

    def get_metrics(self) -> dict:
        """Snapshot of the counters, with derived catalog hit rate and mean analysis time."""
        with self._lock:
            snapshot = dict(self.metrics)
            snapshot["errors_by_type"] = dict(self.metrics["errors_by_type"])

        if snapshot["resolutions"]:
            hits = snapshot["name_hits"] + snapshot["alias_hits"]
            snapshot["hit_rate"] = round(hits / snapshot["resolutions"], 3)
        if snapshot["analyses"]:
            snapshot["mean_analysis_ms"] = round(snapshot["analysis_seconds"] * 1000 / snapshot["analyses"], 1)
        return snapshot

    def log_metrics_summary(self):
        metrics = self.get_metrics()

        self.info("=== Session Metrics ===")
        self.info(
            f"Resolutions: {metrics['resolutions']} "
            f"(name {metrics['name_hits']}, alias {metrics['alias_hits']}, "
            f"created {metrics['skills_created']}, races {metrics['creation_races']})"
        )
        if "hit_rate" in metrics:
            self.info(f"Catalog hit rate: {metrics['hit_rate'] * 100:.1f}%")
        if metrics["merges"]:
            self.info(f"Merges: {metrics['merges']}")
        if "mean_analysis_ms" in metrics:
            self.info(f"Analyses: {metrics['analyses']} (mean {metrics['mean_analysis_ms']} ms)")
        if metrics["analysis_failures"]:
            self.info(f"Failed analyses: {metrics['analysis_failures']}")
            for error_type, count in sorted(metrics["errors_by_type"].items()):
                self.info(f"  {error_type}: {count}")


# Process-wide default, used when a component is not given a logger
_global_logger: Optional[StructuredLogger] = None


def get_logger(name: str = "jobmatch", level: str = "INFO", **kwargs) -> StructuredLogger:
    """
    Return the process-wide logger, creating it on first use.

    Arguments only apply to the first call; later calls return the
    existing instance unchanged.
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Drop the process-wide logger so the next get_logger() builds a new one."""
    global _global_logger
    _global_logger = None
