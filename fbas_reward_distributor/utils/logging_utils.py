"""
Logging setup and batch-run tracking for FBAS influence analysis
"""
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Any, Optional, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(
    verbose: bool = False,
    log_file: Optional[Union[str, Path]] = None
) -> None:
    """
    Configure root logging for the command-line tools

    Records go to stderr (stdout carries the ranking output) and, when
    `log_file` is given, to that file as well.

    Args:
        verbose: Log at DEBUG instead of INFO
        log_file: Optional path of an additional log file
    """
    level = logging.DEBUG if verbose else logging.INFO
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )


class ExperimentLogger:
    """
    Logger with batch-run tracking capabilities
    """

    def __init__(self, name: str = "experiment_logger"):
        """
        Initialize the experiment logger

        Args:
            name: Logger name
        """
        self.logger = logging.getLogger(name)
        self.start_time = None

    def log_experiment_start(self, config: Dict[str, Any]) -> None:
        """
        Log the start of a batch run

        Args:
            config: Batch configuration
        """
        self.start_time = datetime.now()
        self.logger.info("=" * 80)
        self.logger.info("BATCH START")
        self.logger.info(f"Time: {self.start_time.isoformat()}")
        self.logger.info(f"Config: {config}")
        self.logger.info("=" * 80)

    def log_experiment_end(self, results_summary: Dict[str, Any]) -> Optional[timedelta]:
        """
        Log the end of a batch run

        Args:
            results_summary: Summary of results
        """
        end_time = datetime.now()
        duration = end_time - self.start_time if self.start_time else None

        self.logger.info("BATCH END")
        self.logger.info(f"Duration: {duration}")
        self.logger.info(f"Results: {results_summary}")
        self.logger.info("=" * 80)
        return duration
