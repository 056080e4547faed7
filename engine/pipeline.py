#!/usr/bin/env python3
"""
Rule Set Pipeline
Runs load -> filter configuration -> deduplicate -> export over the
files resolved for each rule-set
"""

import logging
from typing import Any, Dict, List, Optional

from engine.metrics import MetricsCollector
from engine.optimizer import Optimizer, UnknownRuleSetError
from rules.ruleset_config import RuleSetsConfig

logger = logging.getLogger(__name__)


class RuleSetPipeline:
    def __init__(self, ruleset_config: RuleSetsConfig, output_dir: str,
                 metrics: Optional[MetricsCollector] = None):
        self.ruleset_config = ruleset_config
        self.output_dir = output_dir
        self.metrics = metrics or MetricsCollector(enabled=False)
        self.optimizer = Optimizer()

        self.files_loaded = 0
        self.files_failed = 0

    def _load(self, ruleset_files: Dict[str, List[str]]):
        for name in sorted(ruleset_files):
            for path in ruleset_files[name]:
                try:
                    self.optimizer.load_rule_file(path, name)
                except OSError as e:
                    self.files_failed += 1
                    logger.warning(f"Failed to load rule file {path}: {e}")
                    continue
                self.files_loaded += 1
        logger.info(f"Loaded {self.files_loaded} rule files into the optimizer ({self.files_failed} failed)")

    def _configure_filters(self):
        for name in self.ruleset_config.get_all_rulesets():
            ruleset = self.ruleset_config.classified_rules[name]
            if not ruleset.filters and not ruleset.excludes:
                continue
            logger.info(f"Configuring rule-set '{name}': filters={len(ruleset.filters)}, "
                        f"excludes={len(ruleset.excludes)}")
            try:
                self.optimizer.set_ruleset_filters(name, ruleset.filters, ruleset.excludes)
            except UnknownRuleSetError as e:
                logger.warning(f"Cannot configure filters: {e}")

    def run(self, ruleset_files: Dict[str, List[str]]) -> Dict[str, Any]:
        with self.metrics.stage('load'):
            self._load(ruleset_files)
        self._configure_filters()

        with self.metrics.stage('deduplicate'):
            self.optimizer.deduplicate()

        logger.info(f"Exporting rule-sets to: {self.output_dir}")
        with self.metrics.stage('export'):
            written = self.optimizer.export(self.output_dir)

        statistics = self.optimizer.get_statistics()
        rules_total = sum(sum(counts.values()) for counts in statistics.values())
        for name in sorted(statistics):
            per_type = ', '.join(f"{t}={c}" for t, c in sorted(statistics[name].items()))
            logger.info(f"Rule-set '{name}': {per_type or 'empty'}")

        self.metrics.record_counts(
            files_loaded=self.files_loaded,
            files_failed=self.files_failed,
            rulesets=len(statistics),
            rules_total=rules_total,
        )

        return {
            'files_loaded': self.files_loaded,
            'files_failed': self.files_failed,
            'rulesets': len(statistics),
            'rules_total': rules_total,
            'statistics': statistics,
            'written': written,
        }
