import logging
import os
from typing import Dict, List, Set

from rules.ruleset_config import RulesetConfig, RuleSetsConfig

logger = logging.getLogger(__name__)

MANUAL_RULES_FILE = 'manual_rules.list'


class RulesLoader:
    """Resolve each configured rule-set to the local files that feed it.

    A source (path or URL) is used by at most one rule-set: once a
    rule-set claims it, later rule-sets skip it, and a rule-set's
    exclude_sources are claimed before its own sources are resolved.
    """

    def __init__(self, config: RuleSetsConfig, work_dir: str):
        self.config = config
        self.work_dir = work_dir
        self.excluded_sources: Set[str] = set()

    def load_all_rules(self) -> Dict[str, List[str]]:
        """Return rule-set name -> local rule file paths"""
        result = {}
        logger.info(f"Resolving {len(self.config.classified_rules)} rule-sets...")

        for name in self.config.get_all_rulesets():
            files = self._load_ruleset(name, self.config.classified_rules[name])
            if files:
                result[name] = files
                logger.info(f"Rule-set '{name}': {len(files)} files")
            else:
                logger.warning(f"Rule-set '{name}': no usable sources")

        logger.info(f"Rule resolution done: {len(result)} rule-sets")
        return result

    def _load_ruleset(self, name: str, ruleset: RulesetConfig) -> List[str]:
        files = []
        logger.info(f"Loading rule-set '{name}' ({ruleset.description}), sources: {ruleset.source_count()} "
                    f"(URLs: {len(ruleset.urls)}, Files: {len(ruleset.files)}, Rules: {len(ruleset.rules)})")

        for source in ruleset.exclude_sources:
            self.excluded_sources.add(source)
            logger.info(f"  excluded: {source}")

        for i, url in enumerate(ruleset.urls, start=1):
            # Downloads happen upstream; only pre-fetched local files are consumed here
            logger.warning(f"  URL {i} not fetched, remote sources are not supported: {url}")

        for i, path in enumerate(ruleset.files, start=1):
            if path in self.excluded_sources:
                logger.info(f"  file {i} excluded (claimed elsewhere): {path}")
                continue
            abs_path = os.path.abspath(path)
            if not os.path.isfile(abs_path):
                logger.warning(f"  file {i} does not exist: {path}")
                continue
            if abs_path in self.excluded_sources:
                logger.info(f"  file {i} excluded (claimed elsewhere): {path}")
                continue
            files.append(abs_path)
            self.excluded_sources.add(path)
            self.excluded_sources.add(abs_path)
            logger.info(f"  file {i}: {os.path.basename(abs_path)}")

        if ruleset.rules:
            files.append(self._write_manual_rules(name, ruleset.rules))
            logger.info(f"  manual rules: {len(ruleset.rules)}")

        return files

    def _write_manual_rules(self, name: str, rules: List[str]) -> str:
        ruleset_dir = os.path.join(self.work_dir, name)
        os.makedirs(ruleset_dir, exist_ok=True)
        path = os.path.join(ruleset_dir, MANUAL_RULES_FILE)
        with open(path, 'w', encoding='utf-8', newline='\n') as f:
            f.write('\n'.join(rules))
            f.write('\n')
        return path

    def get_stats(self) -> Dict[str, int]:
        rulesets = self.config.classified_rules.values()
        return {
            'total_rulesets': len(self.config.classified_rules),
            'total_urls': sum(len(r.urls) for r in rulesets),
            'total_files': sum(len(r.files) for r in rulesets),
            'total_rules': sum(len(r.rules) for r in rulesets),
        }
