"""Rule-set classification file: which sources and patterns make up each rule-set."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

import yaml

logger = logging.getLogger(__name__)


class RuleSetsConfigError(ValueError):
    pass


@dataclass
class RulesetConfig:
    description: str = ''
    urls: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)
    rules: List[str] = field(default_factory=list)
    exclude_sources: List[str] = field(default_factory=list)
    filters: List[str] = field(default_factory=list)
    excludes: List[str] = field(default_factory=list)

    def source_count(self) -> int:
        return len(self.urls) + len(self.files) + len(self.rules)


def _string_list(name: str, key: str, value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise RuleSetsConfigError(f"rule-set '{name}': '{key}' must be a list")
    result = []
    for i, item in enumerate(value, start=1):
        if not isinstance(item, str):
            raise RuleSetsConfigError(f"rule-set '{name}': entry {i} of '{key}' must be a string")
        result.append(item)
    return result


@dataclass
class RuleSetsConfig:
    classified_rules: Dict[str, RulesetConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> 'RuleSetsConfig':
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise RuleSetsConfigError("rule-set configuration must be a mapping")

        raw_rulesets = data.get('classified_rules') or {}
        if not isinstance(raw_rulesets, dict):
            raise RuleSetsConfigError("'classified_rules' must be a mapping")

        rulesets = {}
        for raw_name, raw in raw_rulesets.items():
            name = str(raw_name).strip().lower()
            raw = raw or {}
            if not isinstance(raw, dict):
                raise RuleSetsConfigError(f"rule-set '{name}' must be a mapping")
            rulesets[name] = RulesetConfig(
                description=str(raw.get('description') or ''),
                **{key: _string_list(name, key, raw.get(key))
                   for key in ('urls', 'files', 'rules', 'exclude_sources', 'filters', 'excludes')},
            )

        config = cls(classified_rules=rulesets)
        config.validate()
        return config

    def validate(self):
        for name, ruleset in self.classified_rules.items():
            if ruleset.source_count() == 0:
                raise RuleSetsConfigError(f"rule-set '{name}' has no urls, files or rules configured")
            for i, url in enumerate(ruleset.urls, start=1):
                if not url.strip():
                    raise RuleSetsConfigError(f"rule-set '{name}': url {i} is empty")
            for i, path in enumerate(ruleset.files, start=1):
                if not path.strip():
                    raise RuleSetsConfigError(f"rule-set '{name}': file {i} is empty")

    def get_all_rulesets(self) -> List[str]:
        return sorted(self.classified_rules)

    def get_ruleset_config(self, name: str) -> RulesetConfig:
        try:
            return self.classified_rules[name]
        except KeyError:
            raise RuleSetsConfigError(f"rule-set '{name}' does not exist") from None


def load_rulesets_config(file_path: str) -> RuleSetsConfig:
    """Load and validate a classified rules YAML file"""
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise RuleSetsConfigError(f"failed to read rule-set configuration {file_path}: {e}") from e
    except yaml.YAMLError as e:
        raise RuleSetsConfigError(f"failed to parse rule-set configuration {file_path}: {e}") from e

    config = RuleSetsConfig.from_dict(data)
    logger.info(f"Loaded {len(config.classified_rules)} rule-sets from {file_path}")
    return config
