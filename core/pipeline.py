"""
Census Rounding Pipeline Orchestration.

This module coordinates the entire anonymization workflow:
1. Read the census (or generate a random one)
2. Detect outliers and round balances (fixed threshold or adaptive search)
3. Summarize the rounded census
4. Write the rounded census, metadata and threshold sweep
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, List, Optional

from core.config import Config
from core.memory_monitor import MemoryMonitor
from schema.census import Participant


logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Result of a pipeline execution."""
    success: bool
    total_records: int = 0
    accuracy: Optional[float] = None
    overall_accuracy: Optional[float] = None
    privacy_threshold: Optional[int] = None
    accuracy_met: bool = False
    groups: int = 0
    outliers: int = 0
    output_path: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    errors: list = field(default_factory=list)
    exception: Optional[BaseException] = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "total_records": self.total_records,
            "accuracy": self.accuracy,
            "overall_accuracy": self.overall_accuracy,
            "privacy_threshold": self.privacy_threshold,
            "accuracy_met": self.accuracy_met,
            "groups": self.groups,
            "outliers": self.outliers,
            "output_path": self.output_path,
            "duration_seconds": (
                (self.end_time - self.start_time).total_seconds()
                if self.start_time and self.end_time else None
            ),
            "errors": self.errors
        }


class CensusPipeline:
    """
    Main pipeline for anonymizing a census.

    The pipeline follows these steps:
    1. Load the census from config.data.input_path (JSON or CSV), or
       generate a random census when no input is configured
    2. Round it with the configured policy (engine.census_rounding)
    3. Build the report table
    4. Write the rounded census unless the accuracy floor was missed and
       best-effort output was not accepted
    """

    def __init__(self, config: Config, accept_best_effort: bool = False):
        """
        Initialize pipeline.

        Args:
            config: Configuration object
            accept_best_effort: Write the census even if the accuracy floor
                                was not reached
        """
        self.config = config
        self.accept_best_effort = accept_best_effort
        self.monitor = MemoryMonitor()

    def load_census(self) -> List[Participant]:
        """Read the configured census, or generate one."""
        if self.config.data.input_path:
            from reader.census_reader import CensusReader
            return CensusReader(self.config).read()

        from reader.census_generator import generate_random_census
        return generate_random_census(
            self.config.data.random_census_size,
            self.config.data.random_max_balance,
            seed=self.config.data.random_seed,
        )

    def run(self, participants: Optional[List[Participant]] = None) -> PipelineResult:
        """
        Execute the full pipeline.

        Args:
            participants: Census to use instead of reading one

        Returns:
            PipelineResult with execution results
        """
        from engine.census_rounding import round_census
        from writer.census_report import summarize_census
        from writer.census_writer import CensusWriter

        result = PipelineResult(success=False)
        result.start_time = datetime.now()

        try:
            # Step 1: Read data
            logger.info("=" * 60)
            logger.info("Step 1: Loading census")
            logger.info("=" * 60)

            census = participants if participants is not None else self.load_census()
            result.total_records = len(census)
            self.monitor.checkpoint("census loaded")

            # Step 2: Round
            logger.info("=" * 60)
            logger.info("Step 2: Grouping and rounding balances")
            logger.info("=" * 60)

            rounding = round_census(census, self.config.rounding)
            result.accuracy = rounding.accuracy
            result.overall_accuracy = rounding.overall_accuracy
            result.privacy_threshold = rounding.privacy_threshold
            result.accuracy_met = rounding.success
            result.outliers = len(rounding.outliers)
            self.monitor.checkpoint("census rounded")

            # Step 3: Report
            logger.info("=" * 60)
            logger.info("Step 3: Summarizing rounded census")
            logger.info("=" * 60)

            summary = summarize_census(
                census,
                rounding.participants,
                accuracy=rounding.accuracy,
                privacy_threshold=rounding.privacy_threshold,
            )
            result.groups = summary.groups
            for line in summary.summary().splitlines():
                logger.info(line)

            # Step 4: Write output
            if not rounding.success and not self.accept_best_effort:
                logger.error(
                    "Accuracy floor not met, rounded census not written "
                    "(use best-effort mode to write it anyway)"
                )
            else:
                logger.info("=" * 60)
                logger.info("Step 4: Writing rounded census")
                logger.info("=" * 60)

                writer = CensusWriter(self.config)
                result.output_path = writer.write(
                    rounding.participants,
                    summary=summary,
                    result=rounding.to_dict(),
                    sweep=rounding.to_records(),
                )

            result.success = True
            logger.info("Pipeline completed successfully")

        except Exception as e:
            logger.exception(f"Pipeline failed: {e}")
            result.errors.append(str(e))
            result.exception = e

        finally:
            result.end_time = datetime.now()
            logger.debug(self.monitor.summary())

        return result

    def validate(self) -> bool:
        """
        Validate configuration without running the pipeline.

        Returns:
            True if configuration is valid
        """
        try:
            self.config.validate()

            if self.config.data.input_path and not os.path.exists(self.config.data.input_path):
                raise FileNotFoundError(f"Census file not found: {self.config.data.input_path}")

            logger.info("Configuration validation passed")
            return True

        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            return False
