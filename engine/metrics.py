#!/usr/bin/env python3
"""
Metrics Collection for Rule Set Generation
Per-stage timing and process memory for a batch run
"""

import json
import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List

import psutil

logger = logging.getLogger(__name__)


class MetricsCollector:
    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.started_at = time.time()
        self._process = psutil.Process() if enabled else None

        # Stage timings in execution order
        self.stages: List[Dict[str, Any]] = []

        # Counters (files loaded, rules exported, ...)
        self.counters: Dict[str, int] = {}

        self.peak_rss = 0

        logger.debug(f"MetricsCollector initialized (enabled: {enabled})")

    def _rss(self) -> int:
        rss = self._process.memory_info().rss
        self.peak_rss = max(self.peak_rss, rss)
        return rss

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Time a pipeline stage and sample memory before and after it"""
        if not self.enabled:
            yield
            return

        rss_before = self._rss()
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            rss_after = self._rss()
            self.stages.append({
                'stage': name,
                'duration': duration,
                'rss_before': rss_before,
                'rss_after': rss_after,
            })
            logger.debug(f"Stage '{name}' took {duration * 1000:.1f} ms, "
                         f"rss {rss_after / (1024 * 1024):.1f} MB")

    def record_counts(self, **counts: int):
        if not self.enabled:
            return
        for key, value in counts.items():
            self.counters[key] = self.counters.get(key, 0) + int(value)

    def get_current_metrics(self) -> Dict[str, Any]:
        """Get current metrics snapshot"""
        return {
            'timestamp': time.time(),
            'elapsed': time.time() - self.started_at,
            'stages': [dict(stage) for stage in self.stages],
            'counters': dict(self.counters),
            'peak_rss_mb': self.peak_rss / (1024 * 1024),
        }

    def export_metrics(self, filepath: str):
        """Export all metrics to JSON file"""
        if not self.enabled:
            return
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.get_current_metrics(), f, indent=2, sort_keys=True)
        logger.info(f"Metrics exported to {filepath}")

    def print_summary(self):
        """Print a summary of current metrics"""
        if not self.enabled:
            print("Metrics collection disabled")
            return

        metrics = self.get_current_metrics()

        print("\n" + "=" * 60)
        print("RULE REFINERY RUN SUMMARY")
        print("=" * 60)
        for stage in metrics['stages']:
            print(f"{stage['stage']:<12} {stage['duration'] * 1000:>10.1f} ms   "
                  f"rss {stage['rss_after'] / (1024 * 1024):.1f} MB")
        if metrics['counters']:
            print("-" * 60)
            for key, value in sorted(metrics['counters'].items()):
                print(f"{key}: {value:,}")
        print(f"Peak memory: {metrics['peak_rss_mb']:.1f} MB")
        print(f"Total time: {metrics['elapsed']:.2f} s")
        print("=" * 60)
