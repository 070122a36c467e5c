"""
Census Writer.

Writes a rounded census in the same interchange format it was read from:
a JSON object of address -> decimal balance string (or a two-column CSV),
plus a metadata file with the parameters and results of the run and,
optionally, the threshold sweep.

Output naming follows the census it came from:
    data/census.json -> data/census_rounded.json
                        data/census_rounded_metadata.json
                        data/census_rounded_sweep.csv
"""

import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from core.config import Config
from schema.census import Participant, census_to_mapping
from writer.census_report import CensusSummary, sweep_table


logger = logging.getLogger(__name__)


DEFAULT_OUTPUT = "census_rounded.json"


def rounded_output_path(input_path: str = "", output_path: str = "") -> str:
    """
    Resolve where the rounded census goes.

    Args:
        input_path: Census that was rounded (may be empty for random censuses)
        output_path: Explicit file (.json/.csv) or directory

    Returns:
        Path of the rounded census file
    """
    base = os.path.splitext(os.path.basename(input_path))[0] if input_path else ""
    filename = f"{base}_rounded.json" if base else DEFAULT_OUTPUT

    if output_path:
        if os.path.splitext(output_path)[1].lower() in ('.json', '.csv'):
            return output_path
        return os.path.join(output_path, filename)

    folder = os.path.dirname(input_path) if input_path else "."
    return os.path.join(folder or ".", filename)


class CensusWriter:
    """
    Writes rounded censuses and their metadata.
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize writer.

        Args:
            config: Configuration object
        """
        self.config = config or Config()

    def write(
        self,
        participants: List[Participant],
        output_path: Optional[str] = None,
        summary: Optional[CensusSummary] = None,
        result: Optional[Dict[str, Any]] = None,
        sweep: Optional[List[Dict[str, Any]]] = None
    ) -> str:
        """
        Write a rounded census.

        Args:
            participants: Rounded census
            output_path: Override for the target file or directory
            summary: Report to store in the metadata file
            result: Engine result summary (CensusRoundingResult.to_dict())
            sweep: Threshold sweep records

        Returns:
            Path of the census file written
        """
        path = rounded_output_path(
            self.config.data.input_path,
            output_path or self.config.data.output_path
        )
        folder = os.path.dirname(path)
        if folder:
            os.makedirs(folder, exist_ok=True)

        if path.lower().endswith('.csv'):
            self.write_csv(participants, path)
        else:
            self.write_json(participants, path)

        stem = os.path.splitext(path)[0]
        self._write_metadata(f"{stem}_metadata.json", path, summary, result)
        if sweep and self.config.data.write_sweep:
            self.write_sweep(sweep, f"{stem}_sweep.csv")

        return path

    def write_json(self, participants: List[Participant], path: str) -> None:
        """Write the ``{address: balance}`` JSON census."""
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(census_to_mapping(participants), f)
        logger.info(f"Rounded census written to: {path} ({len(participants):,} holders)")

    def write_csv(self, participants: List[Participant], path: str) -> None:
        """Write a two-column CSV census."""
        df = pd.DataFrame({
            self.config.data.address_column: [p.address for p in participants],
            self.config.data.balance_column: [str(p.balance) for p in participants],
        })
        df.to_csv(path, index=False)
        logger.info(f"Rounded census written to: {path} ({len(participants):,} holders)")

    def write_sweep(self, sweep: List[Dict[str, Any]], path: str) -> None:
        """Write the threshold sweep table."""
        sweep_table(sweep).to_csv(path, index=False)
        logger.info(f"Threshold sweep written to: {path} ({len(sweep)} thresholds)")

    def _write_metadata(
        self,
        metadata_path: str,
        census_path: str,
        summary: Optional[CensusSummary],
        result: Optional[Dict[str, Any]]
    ) -> None:
        """Write metadata file with processing information."""
        rounding = self.config.rounding
        metadata = {
            "created_at": datetime.now().isoformat(),
            "census": census_path,
            "source": self.config.data.input_path or "random",
            "parameters": {
                "min_privacy_threshold": rounding.min_privacy_threshold,
                "privacy_threshold": rounding.privacy_threshold,
                "group_balance_diff": rounding.group_balance_diff,
                "min_accuracy": rounding.min_accuracy,
                "outlier_method": rounding.outlier_method,
                "outliers_threshold": rounding.outliers_threshold,
                "lower_outlier_percentile": rounding.lower_outlier_percentile,
                "search_step_divisor": rounding.search_step_divisor,
            },
            "result": result or {},
            "statistics": summary.to_dict() if summary else {},
        }

        with open(metadata_path, 'w', encoding='utf-8') as f:
            json.dump(metadata, f, indent=2, ensure_ascii=False)

        logger.info(f"Metadata written to: {metadata_path}")
