#!/usr/bin/env python3
"""
Sort Policy Table
Per-type normalization and ordering applied after deduplication.
Consumers diff successive exports, so every order here is total and
deterministic.
"""

import re
from typing import Any, Callable, Dict, Iterable, List, NamedTuple

from rules.rule_types import RuleType

_MASK_RE = re.compile(r'[0-9]+')


class SortPolicy(NamedTuple):
    normalize: Callable[[str], str]
    key: Callable[[str], Any]


def _byte_len(value: str) -> int:
    # Lengths are compared as UTF-8 byte counts
    return len(value.encode('utf-8'))


def _identity(value: str) -> str:
    return value


def _lexicographic(value: str) -> Any:
    return value


def _by_length(value: str) -> Any:
    return (_byte_len(value), value)


def _domain_suffix_key(value: str) -> Any:
    # Short TLD-like suffixes (.io, .cn, .com) first
    length = _byte_len(value)
    short = 2 <= length <= 5
    return (0 if short else 1, length, value)


def _split_options(value: str) -> List[str]:
    return value.split(',')


def normalize_cidr(value: str) -> str:
    """Append the host mask to bare addresses, keeping trailing options.

    '1.2.3.4' -> '1.2.3.4/32', '::1,no-resolve' -> '::1/128,no-resolve'
    """
    parts = _split_options(value)
    address = parts[0]
    if '/' in address:
        return value
    parts[0] = address + ('/128' if ':' in address else '/32')
    return ','.join(parts)


def cidr_mask(value: str) -> int:
    """Prefix length of a CIDR payload, 0 when the mask is not numeric"""
    address = _split_options(value)[0]
    if '/' not in address:
        return 128 if ':' in address else 32
    match = _MASK_RE.match(address.split('/', 1)[1])
    return int(match.group(0)) if match else 0


def _cidr_key(value: str) -> Any:
    # More specific networks first
    return (-cidr_mask(value), value)


def _port_key(value: str) -> Any:
    # Range start compared as a string, not a number: '100-200' < '20-30'
    return (value.split('-', 1)[0], value)


def _asn_key(value: str) -> Any:
    # Compared as a string after dropping the AS prefix
    stripped = value[2:] if value.startswith('AS') else value
    return (stripped, value)


def _priority_key(priority: Dict[str, int]) -> Callable[[str], Any]:
    def key(value: str) -> Any:
        rank = priority.get(value.lower())
        if rank is None:
            return (1, 0, value)
        return (0, rank, value)
    return key


def canonical_domain_suffix(value: str) -> str:
    """Rewrite a DOMAIN-SUFFIX payload to the '+.' wildcard form.

    '+.x.com' stays, '.x.com' -> '+.x.com', 'x.com' -> '+.x.com'
    """
    if value.startswith('+.'):
        return value
    if value.startswith('.'):
        return '+' + value
    return '+.' + value


LEXICOGRAPHIC = SortPolicy(_identity, _lexicographic)
BY_LENGTH = SortPolicy(_identity, _by_length)
CIDR = SortPolicy(normalize_cidr, _cidr_key)

SORT_POLICIES: Dict[RuleType, SortPolicy] = {
    RuleType.DOMAIN: BY_LENGTH,
    RuleType.DOMAIN_SUFFIX: SortPolicy(_identity, _domain_suffix_key),
    RuleType.DOMAIN_KEYWORD: BY_LENGTH,
    RuleType.DOMAIN_WILDCARD: BY_LENGTH,

    # Regex length approximates matching cost
    RuleType.DOMAIN_REGEX: BY_LENGTH,
    RuleType.PROCESS_NAME_REGEX: BY_LENGTH,
    RuleType.PROCESS_PATH_REGEX: BY_LENGTH,

    RuleType.IP_CIDR: CIDR,
    RuleType.IP_CIDR6: CIDR,
    RuleType.SRC_IP_CIDR: CIDR,
    RuleType.SRC_IP_CIDR6: CIDR,
    RuleType.IP_SUFFIX: CIDR,
    RuleType.SRC_IP_SUFFIX: CIDR,

    RuleType.PROCESS_NAME: BY_LENGTH,
    RuleType.PROCESS_PATH: BY_LENGTH,

    RuleType.DST_PORT: SortPolicy(_identity, _port_key),
    RuleType.SRC_PORT: SortPolicy(_identity, _port_key),
    RuleType.IN_PORT: SortPolicy(_identity, _port_key),

    RuleType.GEOIP: LEXICOGRAPHIC,
    RuleType.SRC_GEOIP: LEXICOGRAPHIC,
    RuleType.GEOSITE: LEXICOGRAPHIC,

    RuleType.IP_ASN: SortPolicy(_identity, _asn_key),
    RuleType.SRC_IP_ASN: SortPolicy(_identity, _asn_key),

    RuleType.NETWORK: SortPolicy(_identity, _priority_key({'tcp': 1, 'udp': 2, 'icmp': 3})),
    RuleType.IN_TYPE: SortPolicy(_identity, _priority_key({'http': 1, 'https': 2, 'socks5': 3})),

    RuleType.UID: LEXICOGRAPHIC,
    RuleType.DSCP: LEXICOGRAPHIC,
    RuleType.IN_USER: LEXICOGRAPHIC,
    RuleType.IN_NAME: LEXICOGRAPHIC,
}


def policy_for(rule_type: RuleType) -> SortPolicy:
    return SORT_POLICIES.get(rule_type, LEXICOGRAPHIC)


def sort_rules(rule_type: RuleType, rules: Iterable[str]) -> List[str]:
    """Normalize and order one type's distinct payloads"""
    policy = policy_for(rule_type)
    normalized = {policy.normalize(rule) for rule in rules}
    return sorted(normalized, key=policy.key)
