#!/usr/bin/env python3
"""
Rule Line Parser
Turns one line of loosely formatted rule text (Surge/Clash/QuanX lists,
Clash YAML payloads) into a typed Rule
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from rules.rule_types import RuleType

logger = logging.getLogger(__name__)

_COMMENT_PREFIXES = ('#', ';', '//', '---')

# Lines ending like this are echoed source file names, not rules
_FILENAME_SUFFIXES = ('.list', '.yaml', '.txt', '.conf')


class MalformedLineError(ValueError):
    """A line looked like a rule but could not be parsed"""

    def __init__(self, line: str, reason: str = 'invalid rule format'):
        super().__init__(f"{reason}: {line}")
        self.line = line
        self.reason = reason


class UnknownRuleTypeError(MalformedLineError):
    """The type token is not part of the rule vocabulary"""

    def __init__(self, line: str, type_name: str):
        super().__init__(line, f"unknown rule type '{type_name}'")
        self.type_name = type_name


@dataclass(frozen=True)
class Rule:
    type: RuleType
    payload: str
    options: str = ''

    def stored_value(self) -> str:
        """Payload as kept by the store: 'payload' or 'payload,options'"""
        if self.options:
            return f"{self.payload},{self.options}"
        return self.payload


def _is_blank_or_comment(line: str) -> bool:
    return not line or line.startswith(_COMMENT_PREFIXES)


def _is_yaml_field(line: str) -> bool:
    # payload:, name:, behavior: ...
    if ':' not in line or ',' in line:
        return False
    before_colon = line.split(':', 1)[0].strip()
    return ' ' not in before_colon and ',' not in before_colon


def _unquote(line: str) -> str:
    # quoted YAML scalar, as written by the exporter
    if len(line) >= 2 and line[0] == line[-1] and line[0] in "'\"":
        inner = line[1:-1]
        return inner.replace("''", "'") if line[0] == "'" else inner
    return line


def parse_rule(line: str) -> Optional[Rule]:
    """Parse a single line.

    Returns None for anything that is not rule data (blank lines,
    comments, YAML keys, headers without a separator, file name echoes).
    Raises MalformedLineError when the line has a separator but no
    usable type/payload.
    """
    line = line.strip()
    if _is_blank_or_comment(line):
        return None

    # YAML list item: "- DOMAIN,example.com"
    if line.startswith('-'):
        line = line[1:].strip()
        line = _unquote(line)
        if _is_blank_or_comment(line):
            return None

    if _is_yaml_field(line):
        return None

    # Rules need a type/payload separator; titles and emoji banners don't have one
    if ',' not in line:
        return None

    if line.endswith(_FILENAME_SUFFIXES):
        return None

    parts = line.split(',')
    type_name = parts[0].strip().upper()
    payload = parts[1].strip()
    if not type_name or not payload:
        raise MalformedLineError(line, 'empty rule type or payload')

    rule_type = RuleType.lookup(type_name)
    if rule_type is None:
        raise UnknownRuleTypeError(line, type_name)

    options = parts[2].strip() if len(parts) > 2 else ''
    return Rule(type=rule_type, payload=payload, options=options)


def iter_rules(lines: Iterable[str], source: str = '<memory>') -> Iterator[Rule]:
    """Yield parsed rules, logging and skipping malformed lines"""
    for lineno, line in enumerate(lines, start=1):
        try:
            rule = parse_rule(line)
        except MalformedLineError as e:
            logger.warning(f"{e} (file: {source}, line {lineno})")
            continue
        if rule is not None:
            yield rule
