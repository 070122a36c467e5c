"""
Memory monitoring for the census rounding pipeline.

The whole census is held in memory and re-grouped once per candidate
threshold, so the pipeline logs process and system memory at each stage.
"""

import logging
import os
from typing import Dict, Any

import psutil

logger = logging.getLogger(__name__)


class MemoryMonitor:
    """
    Record memory checkpoints for the current process.
    """

    def __init__(self, pid: int = None):
        """
        Initialize memory monitor.

        Args:
            pid: Process to watch (default: current process)
        """
        self.process = psutil.Process(pid or os.getpid())
        self._checkpoints: Dict[str, Dict[str, Any]] = {}

    def checkpoint(self, label: str) -> Dict[str, float]:
        """
        Log current memory usage.

        Args:
            label: Description of current checkpoint

        Returns:
            Dict with memory statistics (MB / GB and %)
        """
        rss_mb = self.process.memory_info().rss / (1024**2)
        vm = psutil.virtual_memory()

        stats = {
            'label': label,
            'rss_mb': rss_mb,
            'system_used_gb': vm.used / (1024**3),
            'system_total_gb': vm.total / (1024**3),
            'system_percent': vm.percent,
        }

        logger.info(
            f"[MEMORY] {label}: rss={rss_mb:.1f} MB, "
            f"system={stats['system_used_gb']:.2f}/{stats['system_total_gb']:.2f} GB "
            f"({vm.percent:.1f}%)"
        )

        self._checkpoints[label] = stats
        return stats

    @property
    def checkpoints(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._checkpoints)

    def peak_rss_mb(self) -> float:
        """Highest RSS seen across checkpoints (0 if none)."""
        return max((c['rss_mb'] for c in self._checkpoints.values()), default=0.0)

    def summary(self) -> str:
        """
        Generate summary of all checkpoints.

        Returns:
            Formatted summary string
        """
        if not self._checkpoints:
            return "No memory checkpoints recorded"

        lines = [
            "=" * 60,
            "Memory Monitoring Summary",
            "=" * 60,
            ""
        ]

        for label, stats in self._checkpoints.items():
            lines.append(f"{label}:")
            lines.append(f"  RSS: {stats['rss_mb']:.1f} MB")
            lines.append(f"  System: {stats['system_used_gb']:.2f} GB ({stats['system_percent']:.1f}%)")
            lines.append("")

        lines.append("=" * 60)
        return "\n".join(lines)
