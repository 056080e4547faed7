#!/usr/bin/env python3
"""
Rule Refinery
Proxy rule aggregation, deduplication and multi-dialect export
Merges rule files per logical rule-set and writes Mihomo domain /
ipcidr / classical rule providers
"""

import sys
import os
import copy
import json
import argparse
import tempfile
import logging
from typing import Any, Dict, Optional

import yaml

from engine.metrics import MetricsCollector
from engine.pipeline import RuleSetPipeline
from rules.rule_loader import RulesLoader
from rules.ruleset_config import RuleSetsConfigError, load_rulesets_config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Setup logging until the configured handlers are installed
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    'logging': {
        'level': 'info',
        'output_dir': 'log',
        'output_file': 'app.log',
        'console_output': True,
        'format': 'text',
    },
    'generate_rules': {
        'enabled': True,
        'output_rules_path': '',
        'classified_rules_file': '',
    },
    'performance': {
        'enable_metrics': True,
        'metrics_file': '',
    },
}

LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}


class ConfigError(Exception):
    pass


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'time': self.formatTime(record),
            'level': record.levelname.lower(),
            'logger': record.name,
            'message': record.getMessage(),
        }
        if record.exc_info:
            entry['error'] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _merge_defaults(defaults: Dict[str, Any], loaded: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(defaults)
    for key, value in (loaded or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_defaults(merged[key], value)
        elif value is not None:
            merged[key] = value
    return merged


def load_config(config_path: str) -> Dict[str, Any]:
    """Load YAML configuration, filling in defaults"""
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config {config_path}: {e}") from e

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config {config_path} must be a mapping")
    return _merge_defaults(DEFAULT_CONFIG, loaded)


def setup_logging(log_config: Dict[str, Any], verbose: bool = False):
    """Install file (and optionally console) handlers on the root logger"""
    level = LOG_LEVELS.get(str(log_config.get('level', 'info')).lower(), logging.INFO)
    if verbose:
        level = logging.DEBUG

    if log_config.get('format') == 'json':
        formatter: logging.Formatter = JsonLogFormatter()
    else:
        formatter = logging.Formatter(LOG_FORMAT)

    os.makedirs(log_config['output_dir'], exist_ok=True)
    log_path = os.path.join(log_config['output_dir'], log_config['output_file'])

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_path, encoding='utf-8')
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    root.setLevel(level)


class RuleRefinerySystem:
    def __init__(self, config: Dict[str, Any]):
        self.config = config
        generate = config['generate_rules']

        if not generate['enabled']:
            raise ConfigError("Nothing to do: generate_rules.enabled is false")
        if not generate['output_rules_path']:
            raise ConfigError("Missing required setting generate_rules.output_rules_path")
        if not generate['classified_rules_file']:
            raise ConfigError("Missing required setting generate_rules.classified_rules_file")

        self.metrics = MetricsCollector(enabled=bool(config['performance']['enable_metrics']))

    def run(self) -> Dict[str, Any]:
        """Resolve sources, optimize and export every rule-set"""
        generate = self.config['generate_rules']
        output_dir = generate['output_rules_path']

        logger.info("=" * 60)
        logger.info("RULE REFINERY - RULE SET GENERATION")
        logger.info("=" * 60)
        logger.info(f"Rule-set config: {generate['classified_rules_file']}")
        logger.info(f"Output directory: {output_dir}")

        ruleset_config = load_rulesets_config(generate['classified_rules_file'])

        with tempfile.TemporaryDirectory(prefix='rule-refinery-') as work_dir:
            loader = RulesLoader(ruleset_config, work_dir)
            stats = loader.get_stats()
            logger.info(f"Rule-set config: {stats['total_rulesets']} rule-sets, {stats['total_urls']} URLs, "
                        f"{stats['total_files']} local files, {stats['total_rules']} manual rules")

            with self.metrics.stage('resolve'):
                ruleset_files = loader.load_all_rules()

            if not ruleset_files:
                logger.info("No rule files to process")
                return {'files_loaded': 0, 'files_failed': 0, 'rulesets': 0,
                        'rules_total': 0, 'statistics': {}, 'written': {}}

            pipeline = RuleSetPipeline(ruleset_config, output_dir, self.metrics)
            summary = pipeline.run(ruleset_files)

        logger.info(f"Rule-sets written to: {output_dir}")

        metrics_file = self.config['performance'].get('metrics_file')
        if metrics_file:
            try:
                self.metrics.export_metrics(metrics_file)
            except OSError as e:
                logger.warning(f"Failed to write metrics file {metrics_file}: {e}")

        return summary


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Rule Refinery - proxy rule aggregation and multi-dialect export',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                             # Run with config.yaml
  python main.py -c my.yaml -o ./rulesets    # Custom config and output
  python main.py -r classified_rules.yaml -v # Override rule-set file, debug logging
        """
    )

    parser.add_argument('--config', '-c', default='config.yaml',
                        help='Configuration file path (default: config.yaml)')
    parser.add_argument('--rules', '-r', type=str,
                        help='Override classified rules file from config')
    parser.add_argument('--output', '-o', type=str,
                        help='Override rule-set output directory from config')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    if args.rules:
        config['generate_rules']['classified_rules_file'] = args.rules
    if args.output:
        config['generate_rules']['output_rules_path'] = args.output

    try:
        setup_logging(config['logging'], verbose=args.verbose)
    except OSError as e:
        logger.error(f"Failed to initialize logging: {e}")
        return 1

    logger.info(f"Starting, config={args.config}")

    try:
        system = RuleRefinerySystem(config)
        summary = system.run()
    except (ConfigError, RuleSetsConfigError) as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"Rule-set generation failed: {e}")
        return 1

    logger.info(f"Done: {summary['rulesets']} rule-sets, {summary['rules_total']} rules, "
                f"{summary['files_loaded']} files loaded, {summary['files_failed']} failed")
    system.metrics.print_summary()
    return 0


if __name__ == "__main__":
    sys.exit(main())
