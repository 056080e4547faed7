#!/usr/bin/env python3
"""
Rule Optimizer
Aggregates rule files per logical rule-set, deduplicates and orders
them, and hands the result to the multi-dialect exporter
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from engine.exporter import RuleSetExporter
from engine.rule_filter import RuleFilter
from engine.sort_policy import sort_rules
from rules.rule_parser import iter_rules
from rules.rule_types import RuleType

logger = logging.getLogger(__name__)


class UnknownRuleSetError(KeyError):
    """Filters were configured for a rule-set that never loaded a file"""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"rule-set '{self.name}' does not exist"


@dataclass
class RuleSet:
    name: str
    rules: Dict[RuleType, List[str]] = field(default_factory=dict)
    filters: List[str] = field(default_factory=list)
    excludes: List[str] = field(default_factory=list)

    def add(self, rule_type: RuleType, value: str):
        self.rules.setdefault(rule_type, []).append(value)

    def count(self) -> int:
        return sum(len(values) for values in self.rules.values())


class Optimizer:
    def __init__(self, rule_filter: Optional[RuleFilter] = None):
        self.rule_filter = rule_filter or RuleFilter()
        self._rulesets: Dict[str, RuleSet] = {}

    def load_rule_file(self, file_path: str, ruleset_name: str) -> int:
        """Parse a rule file into the named rule-set.

        Malformed lines are logged and skipped. OSError from opening or
        reading the file propagates and leaves the optimizer untouched.
        Returns the number of rules added.
        """
        # Only '\n' ends a line; a trailing '\r' is dropped
        with open(file_path, 'r', encoding='utf-8', errors='replace', newline='') as f:
            lines = [line[:-1] if line.endswith('\r') else line for line in f.read().split('\n')]

        ruleset = self._rulesets.get(ruleset_name)
        if ruleset is None:
            ruleset = RuleSet(name=ruleset_name)
            self._rulesets[ruleset_name] = ruleset

        added = 0
        for rule in iter_rules(lines, source=file_path):
            ruleset.add(rule.type, rule.stored_value())
            added += 1

        logger.debug(f"Loaded {added} rules from {file_path} into '{ruleset_name}'")
        return added

    def set_ruleset_filters(self, ruleset_name: str, filters: Sequence[str], excludes: Sequence[str]):
        """Replace a rule-set's filter and exclude patterns"""
        ruleset = self._rulesets.get(ruleset_name)
        if ruleset is None:
            raise UnknownRuleSetError(ruleset_name)

        ruleset.filters = list(filters or [])
        ruleset.excludes = list(excludes or [])

        if ruleset.filters:
            logger.info(f"Rule-set '{ruleset_name}': {len(ruleset.filters)} filters configured")
        if ruleset.excludes:
            logger.info(f"Rule-set '{ruleset_name}': {len(ruleset.excludes)} excludes configured")

    def deduplicate(self):
        """Collapse duplicates and apply the per-type sort policy in place"""
        for ruleset in self._rulesets.values():
            before = ruleset.count()
            for rule_type, values in ruleset.rules.items():
                ruleset.rules[rule_type] = sort_rules(rule_type, values)
            logger.info(f"Rule-set '{ruleset.name}': {before} -> {ruleset.count()} rules after deduplication")

    def export(self, output_dir: str) -> Dict[str, Dict[str, int]]:
        """Write every rule-set's dialect files under output_dir/<name>/.

        Filesystem errors abort the export and propagate.
        """
        exporter = RuleSetExporter(self.rule_filter)
        written = {}
        for name in sorted(self._rulesets):
            written[name] = exporter.export_ruleset(self._rulesets[name], output_dir)
        return written

    def get_statistics(self) -> Dict[str, Dict[str, int]]:
        return {
            name: {str(rule_type): len(values) for rule_type, values in ruleset.rules.items()}
            for name, ruleset in self._rulesets.items()
        }

    def get_ruleset(self, name: str) -> Optional[RuleSet]:
        return self._rulesets.get(name)

    def ruleset_names(self) -> List[str]:
        return sorted(self._rulesets)
