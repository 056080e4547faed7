"""Tests for per-type normalization and ordering."""

import pytest

from engine.sort_policy import (
    LEXICOGRAPHIC,
    SORT_POLICIES,
    canonical_domain_suffix,
    cidr_mask,
    normalize_cidr,
    policy_for,
    sort_rules,
)
from rules.rule_types import RuleType


# =============================================================================
# Normalizers
# =============================================================================


class TestCIDRNormalization:
    @pytest.mark.parametrize("value,expected", [
        ("1.2.3.4", "1.2.3.4/32"),
        ("::1", "::1/128"),
        ("10.0.0.0/8", "10.0.0.0/8"),
        ("1.2.3.4,no-resolve", "1.2.3.4/32,no-resolve"),
        ("2001:db8::1,no-resolve", "2001:db8::1/128,no-resolve"),
    ])
    def test_normalize(self, value, expected):
        assert normalize_cidr(value) == expected

    def test_normalize_is_idempotent(self):
        once = normalize_cidr("8.8.8.8")
        assert normalize_cidr(once) == once

    @pytest.mark.parametrize("value,mask", [
        ("10.0.0.0/8", 8),
        ("1.2.3.0/24,no-resolve", 24),
        ("1.2.3.4", 32),
        ("::1", 128),
        ("1.2.3.0/abc", 0),
    ])
    def test_mask(self, value, mask):
        assert cidr_mask(value) == mask


class TestDomainSuffixCanonicalization:
    @pytest.mark.parametrize("value", [".x.com", "x.com", "+.x.com"])
    def test_all_forms_converge(self, value):
        assert canonical_domain_suffix(value) == "+.x.com"

    def test_idempotent(self):
        once = canonical_domain_suffix("example.org")
        assert canonical_domain_suffix(once) == once


# =============================================================================
# Sort policy table
# =============================================================================


class TestSortPolicies:
    def test_domain_by_length_then_lexicographic(self):
        rules = ["bbb.com", "a.com", "aaa.com", "z.io"]
        assert sort_rules(RuleType.DOMAIN, rules) == ["z.io", "a.com", "aaa.com", "bbb.com"]

    def test_domain_suffix_short_tier_first(self):
        rules = ["google.com", "cn", "example.org", ".io", "com", "a"]
        # 'a' has length 1, outside the 2-5 tier
        assert sort_rules(RuleType.DOMAIN_SUFFIX, rules) == [
            "cn", ".io", "com", "a", "google.com", "example.org",
        ]

    def test_keyword_and_wildcard_by_length(self):
        assert sort_rules(RuleType.DOMAIN_KEYWORD, ["google", "ad", "zz"]) == ["ad", "zz", "google"]
        assert sort_rules(RuleType.DOMAIN_WILDCARD, ["*.b.com", "*.a.com", "a*"]) == ["a*", "*.a.com", "*.b.com"]

    def test_regex_by_length(self):
        rules = [r"^.+\.google\.com$", r"^ad\.", r"^a\."]
        assert sort_rules(RuleType.DOMAIN_REGEX, rules) == [r"^a\.", r"^ad\.", r"^.+\.google\.com$"]
        assert sort_rules(RuleType.PROCESS_NAME_REGEX, ["b.*", "a"]) == ["a", "b.*"]

    def test_cidr_more_specific_first(self):
        rules = ["10.0.0.0/8", "1.2.3.4", "192.168.0.0/16", "1.2.3.0/24,no-resolve", "9.9.9.9/32"]
        assert sort_rules(RuleType.IP_CIDR, rules) == [
            "1.2.3.4/32",
            "9.9.9.9/32",
            "1.2.3.0/24,no-resolve",
            "192.168.0.0/16",
            "10.0.0.0/8",
        ]

    def test_cidr6_normalized_and_sorted(self):
        rules = ["2001:db8::/32", "::1", "fe80::/10"]
        assert sort_rules(RuleType.IP_CIDR6, rules) == ["::1/128", "2001:db8::/32", "fe80::/10"]

    def test_cidr_normalization_collapses_duplicates(self):
        assert sort_rules(RuleType.SRC_IP_CIDR, ["1.1.1.1", "1.1.1.1/32"]) == ["1.1.1.1/32"]

    def test_process_by_length(self):
        assert sort_rules(RuleType.PROCESS_NAME, ["Telegram", "curl", "ssh"]) == ["ssh", "curl", "Telegram"]

    def test_ports_compare_range_start_as_string(self):
        rules = ["20-30", "100-200", "443", "8080", "80"]
        assert sort_rules(RuleType.DST_PORT, rules) == ["100-200", "20-30", "443", "80", "8080"]

    def test_ports_with_same_start_are_deterministic(self):
        assert sort_rules(RuleType.SRC_PORT, ["80-90", "80"]) == ["80", "80-90"]

    def test_geo_lexicographic(self):
        assert sort_rules(RuleType.GEOIP, ["US", "CN", "JP"]) == ["CN", "JP", "US"]
        assert sort_rules(RuleType.GEOSITE, ["youtube", "google"]) == ["google", "youtube"]

    def test_asn_strips_prefix_and_compares_as_string(self):
        rules = ["AS13335", "AS15169", "9808", "AS209"]
        assert sort_rules(RuleType.IP_ASN, rules) == ["AS13335", "AS15169", "AS209", "9808"]

    def test_network_priority(self):
        assert sort_rules(RuleType.NETWORK, ["icmp", "udp", "tcp"]) == ["tcp", "udp", "icmp"]

    def test_network_unknown_values_always_after_known_values(self):
        """Total order: unknown values never interleave with known ones, so "any" follows "tcp"."""
        assert sort_rules(RuleType.NETWORK, ["sctp", "any", "udp", "TCP", "tcp"]) == ["TCP", "tcp", "udp", "any", "sctp"]

    def test_in_type_priority(self):
        assert sort_rules(RuleType.IN_TYPE, ["socks5", "https", "http", "mixed"]) == [
            "http", "https", "socks5", "mixed",
        ]

    def test_plain_lexicographic_kinds(self):
        for rule_type in (RuleType.UID, RuleType.DSCP, RuleType.IN_USER, RuleType.IN_NAME):
            assert sort_rules(rule_type, ["b", "10", "a", "2"]) == ["10", "2", "a", "b"]

    def test_fallback_policy(self):
        assert RuleType.RULE_SET not in SORT_POLICIES
        assert policy_for(RuleType.RULE_SET) is LEXICOGRAPHIC
        assert sort_rules(RuleType.RULE_SET, ["proxy", "direct"]) == ["direct", "proxy"]

    def test_duplicates_removed(self):
        assert sort_rules(RuleType.DOMAIN, ["a.com", "a.com", "A.com"]) == ["A.com", "a.com"]

    def test_sorting_twice_is_stable(self):
        rules = ["10.0.0.0/8", "1.2.3.4", "1.2.3.0/24"]
        once = sort_rules(RuleType.IP_CIDR, rules)
        assert sort_rules(RuleType.IP_CIDR, once) == once
