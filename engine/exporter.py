#!/usr/bin/env python3
"""
Multi-Dialect Exporter
Mihomo rule providers accept three behaviors: domain, ipcidr and
classical. Every rule-set is written in all of them, each as a YAML
payload and a plain-text list, so downstream tooling always finds the
same set of files.
"""

import logging
import os
from typing import Dict, List, TYPE_CHECKING

from engine.rule_filter import RuleFilter
from engine.sort_policy import canonical_domain_suffix
from rules.rule_types import CLASSICAL_ORDER, DOMAIN_LIST_TYPES, IPCIDR_LIST_TYPES, RuleType

if TYPE_CHECKING:
    from engine.optimizer import RuleSet

logger = logging.getLogger(__name__)

NO_RESOLVE = 'no-resolve'
PLACEHOLDER = '# No rules in this category, placeholder generated automatically'


def strip_no_resolve(value: str) -> str:
    return ','.join(part for part in value.split(',') if part.strip() != NO_RESOLVE)


def add_no_resolve(value: str) -> str:
    if NO_RESOLVE in value:
        return value
    return f"{value},{NO_RESOLVE}"


def classical_variant(include_all: bool, with_no_resolve: bool) -> str:
    name = 'classical'
    if include_all:
        name += '_all'
    if with_no_resolve:
        name += '_no_resolve'
    return name


def _yaml_item(value: str) -> str:
    # single-quoted scalar, quotes escaped by doubling
    return "  - '" + value.replace("'", "''") + "'"


def _write_lines(path: str, lines: List[str]):
    with open(path, 'w', encoding='utf-8', newline='\n') as f:
        f.write('\n'.join(lines) + '\n')


class RuleSetExporter:
    def __init__(self, rule_filter: RuleFilter):
        self.rule_filter = rule_filter

    def _filtered(self, ruleset: 'RuleSet', rule_type: RuleType) -> List[str]:
        rules = ruleset.rules.get(rule_type)
        if not rules:
            return []
        return self.rule_filter.apply(rules, rule_type, ruleset.filters, ruleset.excludes)

    def _write_pair(self, ruleset_dir: str, stem: str, yaml_lines: List[str], list_lines: List[str]):
        yaml_path = os.path.join(ruleset_dir, f"{stem}.yaml")
        list_path = os.path.join(ruleset_dir, f"{stem}.list")
        _write_lines(yaml_path, yaml_lines)
        _write_lines(list_path, list_lines)
        return yaml_path, list_path

    def _write_payload(self, ruleset_dir: str, stem: str, entries: List[str]) -> int:
        if not entries:
            yaml_path, list_path = self._write_pair(
                ruleset_dir, stem, [PLACEHOLDER, 'payload: []'], [PLACEHOLDER])
            logger.info(f"Generated empty files: {yaml_path}, {list_path} (comments only)")
            return 0

        yaml_path, list_path = self._write_pair(
            ruleset_dir, stem, ['payload:'] + [_yaml_item(e) for e in entries], list(entries))
        logger.info(f"Generated files: {yaml_path}, {list_path} ({len(entries)} rules)")
        return len(entries)

    def export_domain(self, ruleset: 'RuleSet', ruleset_dir: str) -> int:
        """DOMAIN verbatim plus DOMAIN-SUFFIX in '+.' form.

        '+.example.com' matches example.com and every subdomain, while
        '.example.com' would only match subdomains. Keyword, wildcard and
        regex kinds cannot be expressed by this behavior.
        """
        entries = self._filtered(ruleset, RuleType.DOMAIN)
        entries += [canonical_domain_suffix(rule) for rule in self._filtered(ruleset, RuleType.DOMAIN_SUFFIX)]
        # '.x.com' and 'x.com' collapse once rewritten
        entries = list(dict.fromkeys(entries))
        return self._write_payload(ruleset_dir, f"{ruleset.name}_domain", entries)

    def export_ipcidr(self, ruleset: 'RuleSet', ruleset_dir: str) -> int:
        """Plain IP-CIDR/IP-CIDR6 with the no-resolve flag removed"""
        entries = []
        for rule_type in (RuleType.IP_CIDR, RuleType.IP_CIDR6):
            entries += [strip_no_resolve(rule) for rule in self._filtered(ruleset, rule_type)]
        # plain and no-resolve forms of one network collapse once stripped
        entries = list(dict.fromkeys(entries))
        return self._write_payload(ruleset_dir, f"{ruleset.name}_ipcidr", entries)

    def _classical_header(self, ruleset: 'RuleSet', include_all: bool, with_no_resolve: bool) -> List[str]:
        if include_all:
            header = [f"# {ruleset.name} - Classical Format (All Rules)",
                      "# Includes all rule types"]
        elif with_no_resolve:
            header = [f"# {ruleset.name} - Classical Format (Other Rules)",
                      "# Excludes rules that can use domain.list (DOMAIN/DOMAIN-SUFFIX)"]
        else:
            header = [f"# {ruleset.name} - Classical Format (Other Rules)",
                      "# Excludes rules that can use domain.list (DOMAIN/DOMAIN-SUFFIX)",
                      "# and ipcidr.list (IP-CIDR/IP-CIDR6)"]
        if with_no_resolve:
            header.append(f"# IP-CIDR rules include '{NO_RESOLVE}' parameter")
        else:
            header.append(f"# IP-CIDR rules exclude '{NO_RESOLVE}' parameter")
        header.append("# Rules are optimized and sorted for best performance")
        return header

    def export_classical(self, ruleset: 'RuleSet', ruleset_dir: str,
                         include_all: bool, with_no_resolve: bool) -> int:
        stem = f"{ruleset.name}_{classical_variant(include_all, with_no_resolve)}"

        header = self._classical_header(ruleset, include_all, with_no_resolve)
        yaml_body: List[str] = []
        list_body: List[str] = []
        total = 0

        for rule_type in CLASSICAL_ORDER:
            if not include_all:
                if rule_type in DOMAIN_LIST_TYPES:
                    continue
                # ipcidr files never carry no-resolve, so only the
                # no-resolve variant re-carries plain CIDR rules
                if rule_type in IPCIDR_LIST_TYPES and not with_no_resolve:
                    continue

            filtered = self._filtered(ruleset, rule_type)
            if not filtered:
                continue

            if rule_type in IPCIDR_LIST_TYPES:
                rewrite = add_no_resolve if with_no_resolve else strip_no_resolve
                filtered = list(dict.fromkeys(rewrite(rule) for rule in filtered))

            yaml_body += ['', f"  # {rule_type} ({len(filtered)} rules)"]
            list_body += ['', f"# {rule_type} ({len(filtered)} rules)"]
            for rule in filtered:
                yaml_body.append(_yaml_item(f"{rule_type},{rule}"))
                list_body.append(f"{rule_type},{rule}")
            total += len(filtered)

        if total == 0:
            yaml_path, list_path = self._write_pair(
                ruleset_dir, stem, header + [PLACEHOLDER, 'payload: []'], header + [PLACEHOLDER])
            logger.info(f"Generated empty files: {yaml_path}, {list_path} (comments only)")
            return 0

        yaml_path, list_path = self._write_pair(
            ruleset_dir, stem, header + ['payload:'] + yaml_body, header + list_body)
        logger.info(f"Generated files: {yaml_path}, {list_path} ({total} rules)")
        return total

    def export_ruleset(self, ruleset: 'RuleSet', output_dir: str) -> Dict[str, int]:
        """Write all twelve files for one rule-set, returning rule counts per dialect"""
        ruleset_dir = os.path.join(output_dir, ruleset.name)
        os.makedirs(ruleset_dir, exist_ok=True)

        counts = {
            'domain': self.export_domain(ruleset, ruleset_dir),
            'ipcidr': self.export_ipcidr(ruleset, ruleset_dir),
        }
        for include_all in (False, True):
            for with_no_resolve in (False, True):
                name = classical_variant(include_all, with_no_resolve)
                counts[name] = self.export_classical(ruleset, ruleset_dir, include_all, with_no_resolve)
        return counts
