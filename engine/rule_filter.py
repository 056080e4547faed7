#!/usr/bin/env python3
"""
Filter/Exclude Engine
Whitelist-then-blacklist glob matching over "TYPE,payload" strings
"""

import logging
from typing import List, Optional, Protocol, Sequence, Set

from wcmatch import glob

from rules.rule_types import RuleType

logger = logging.getLogger(__name__)


class GlobPatternError(ValueError):
    """A filter or exclude pattern could not be compiled"""

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"bad glob pattern '{pattern}': {reason}")
        self.pattern = pattern


class GlobMatcher(Protocol):
    def match(self, pattern: str, candidate: str) -> bool:
        ...


def _check_balanced(pattern: str):
    """Reject unterminated character classes and brace groups"""
    i = 0
    depth = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == '\\':
            i += 2
            continue
        if ch == '[':
            j = i + 1
            if j < n and pattern[j] in '!^':
                j += 1
            # a ']' right after the opening bracket is literal
            if j < n and pattern[j] == ']':
                j += 1
            while j < n and pattern[j] != ']':
                if pattern[j] == '\\':
                    j += 1
                j += 1
            if j >= n:
                raise GlobPatternError(pattern, "unterminated '['")
            i = j + 1
            continue
        if ch == '{':
            depth += 1
        elif ch == '}' and depth:
            depth -= 1
        i += 1
    if depth:
        raise GlobPatternError(pattern, "unterminated '{'")


class WcmatchGlobMatcher:
    """Path-style glob: '*' stays within a '/' segment, '**' spans segments"""

    FLAGS = glob.GLOBSTAR | glob.BRACE | glob.DOTGLOB | glob.FORCEUNIX

    def match(self, pattern: str, candidate: str) -> bool:
        _check_balanced(pattern)
        try:
            return glob.globmatch(candidate, pattern, flags=self.FLAGS)
        except Exception as e:
            raise GlobPatternError(pattern, str(e)) from e


class RuleFilter:
    def __init__(self, matcher: Optional[GlobMatcher] = None):
        self.matcher = matcher or WcmatchGlobMatcher()

    def _matches_any(self, patterns: Sequence[str], candidate: str, bad: Set[str]) -> Optional[str]:
        for pattern in patterns:
            if not pattern or pattern in bad:
                continue
            try:
                if self.matcher.match(pattern, candidate):
                    return pattern
            except GlobPatternError as e:
                bad.add(pattern)
                logger.warning(f"{e}; pattern ignored")
        return None

    def apply(self, rules: Sequence[str], rule_type: RuleType,
              filters: Sequence[str], excludes: Sequence[str]) -> List[str]:
        """Keep rules matching any filter (all when none), then drop excluded ones.

        Order of the surviving rules is preserved.
        """
        if not rules:
            return []

        original_count = len(rules)
        bad: Set[str] = set()
        result = list(rules)

        logger.debug(f"Filtering {rule_type}: filters={list(filters)}, "
                     f"excludes={list(excludes)}, input={original_count}")

        if filters:
            kept = []
            for rule in result:
                full_rule = f"{rule_type},{rule}"
                pattern = self._matches_any(filters, full_rule, bad)
                if pattern is not None:
                    kept.append(rule)
                    if len(kept) <= 3:
                        logger.debug(f"  matched filter='{pattern}': {full_rule}")
            logger.info(f"  {rule_type} filter matches: {len(kept)}/{original_count}")
            result = kept

        if excludes:
            kept = []
            for rule in result:
                full_rule = f"{rule_type},{rule}"
                pattern = self._matches_any(excludes, full_rule, bad)
                if pattern is None:
                    kept.append(rule)
                else:
                    logger.debug(f"  excluded by '{pattern}': {full_rule}")
            excluded = len(result) - len(kept)
            if excluded:
                logger.info(f"  {rule_type} excluded: {excluded}, kept {len(kept)}")
            result = kept

        if len(result) != original_count:
            logger.info(f"Rule filtering {rule_type}: {original_count} -> {len(result)}")

        return result
