from enum import Enum
from typing import FrozenSet, Optional, Tuple


class RuleType(str, Enum):
    """Rule kinds understood by Mihomo-style proxy clients."""

    # Domain matchers, cheapest first
    DOMAIN = 'DOMAIN'
    DOMAIN_SUFFIX = 'DOMAIN-SUFFIX'
    DOMAIN_KEYWORD = 'DOMAIN-KEYWORD'
    DOMAIN_WILDCARD = 'DOMAIN-WILDCARD'
    DOMAIN_REGEX = 'DOMAIN-REGEX'

    # IP matchers
    IP_CIDR = 'IP-CIDR'
    IP_CIDR6 = 'IP-CIDR6'
    SRC_IP_CIDR = 'SRC-IP-CIDR'
    SRC_IP_CIDR6 = 'SRC-IP-CIDR6'
    IP_SUFFIX = 'IP-SUFFIX'
    SRC_IP_SUFFIX = 'SRC-IP-SUFFIX'
    GEOIP = 'GEOIP'
    SRC_GEOIP = 'SRC-GEOIP'
    IP_ASN = 'IP-ASN'
    SRC_IP_ASN = 'SRC-IP-ASN'

    # Process matchers
    PROCESS_NAME = 'PROCESS-NAME'
    PROCESS_PATH = 'PROCESS-PATH'
    PROCESS_NAME_REGEX = 'PROCESS-NAME-REGEX'
    PROCESS_PATH_REGEX = 'PROCESS-PATH-REGEX'

    # Ports
    DST_PORT = 'DST-PORT'
    SRC_PORT = 'SRC-PORT'
    IN_PORT = 'IN-PORT'

    GEOSITE = 'GEOSITE'
    NETWORK = 'NETWORK'
    UID = 'UID'
    IN_TYPE = 'IN-TYPE'
    IN_USER = 'IN-USER'
    IN_NAME = 'IN-NAME'
    DSCP = 'DSCP'
    RULE_SET = 'RULE-SET'
    SUB_RULE = 'SUB-RULE'
    MATCH = 'MATCH'
    FINAL = 'FINAL'

    def __str__(self) -> str:
        return self.value

    @classmethod
    def lookup(cls, name: str) -> Optional['RuleType']:
        """Case-insensitive lookup, None for unknown kinds"""
        try:
            return cls(name.strip().upper())
        except ValueError:
            return None


# Kinds the domain dialect can express
DOMAIN_LIST_TYPES: FrozenSet[RuleType] = frozenset({
    RuleType.DOMAIN,
    RuleType.DOMAIN_SUFFIX,
})

# Kinds the ipcidr dialect can express
IPCIDR_LIST_TYPES: FrozenSet[RuleType] = frozenset({
    RuleType.IP_CIDR,
    RuleType.IP_CIDR6,
})

# Traversal order of the classical dialect. MATCH/FINAL are policy
# terminators, not rule-set content, and are never exported.
CLASSICAL_ORDER: Tuple[RuleType, ...] = (
    RuleType.DOMAIN, RuleType.DOMAIN_SUFFIX, RuleType.DOMAIN_KEYWORD,
    RuleType.DOMAIN_WILDCARD, RuleType.DOMAIN_REGEX,
    RuleType.IP_CIDR, RuleType.IP_CIDR6, RuleType.SRC_IP_CIDR,
    RuleType.SRC_IP_CIDR6, RuleType.IP_SUFFIX, RuleType.SRC_IP_SUFFIX,
    RuleType.IP_ASN, RuleType.SRC_IP_ASN,
    RuleType.GEOIP, RuleType.SRC_GEOIP, RuleType.GEOSITE,
    RuleType.PROCESS_NAME, RuleType.PROCESS_PATH,
    RuleType.PROCESS_NAME_REGEX, RuleType.PROCESS_PATH_REGEX,
    RuleType.DST_PORT, RuleType.SRC_PORT, RuleType.IN_PORT,
    RuleType.NETWORK, RuleType.UID, RuleType.IN_TYPE, RuleType.IN_USER,
    RuleType.IN_NAME, RuleType.DSCP,
    RuleType.RULE_SET, RuleType.SUB_RULE,
)
