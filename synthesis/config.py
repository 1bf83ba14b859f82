"""
Synthesis configuration.
Loads config/standup.yaml (the `llm` section) and applies STANDUP_* environment
overrides. Out-of-range values fall back to defaults with a logged warning.
"""
import logging
import os
from typing import Any, Dict, Mapping, Optional

import yaml

from errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = 'standup.yaml'

STYLES = ('technical', 'business', 'brief')
MODES = ('embedded', 'remote', 'disabled')
MODE_ALIASES = {'ollama': 'remote', 'rule_based': 'embedded', 'local': 'embedded'}
FALLBACK_STRATEGIES = ('strict', 'minimal', 'graceful')

DEFAULT_MAX_SUMMARY_LENGTH = 200
DEFAULT_TIMEOUT = 30.0
DEBUG_TIMEOUT = 60.0

DEFAULTS: Dict[str, Any] = {
    'enabled': True,
    'mode': 'embedded',
    'debug': False,
    'summary_style': 'technical',
    'max_summary_length': DEFAULT_MAX_SUMMARY_LENGTH,
    'include_technical_details': True,
    'prioritize_recent_work': True,
    'fallback_strategy': 'graceful',
    'max_workers': 1,
    'base_url': 'http://localhost:11434',
    'remote_model': 'llama3.1',
    'timeout': None,  # resolved from debug
    'max_retries': 3,
    'backoff_base': 1.0,
}

# env var -> (config key, converter)
ENV_OVERRIDES = (
    ('STANDUP_MODE', 'mode', str),
    ('STANDUP_SUMMARY_STYLE', 'summary_style', str),
    ('STANDUP_MAX_SUMMARY_LENGTH', 'max_summary_length', int),
    ('STANDUP_FALLBACK_STRATEGY', 'fallback_strategy', str),
    ('STANDUP_BASE_URL', 'base_url', str),
    ('STANDUP_MODEL', 'remote_model', str),
    ('STANDUP_TIMEOUT', 'timeout', float),
    ('STANDUP_MAX_RETRIES', 'max_retries', int),
    ('STANDUP_BACKOFF_BASE', 'backoff_base', float),
    ('STANDUP_MAX_WORKERS', 'max_workers', int),
)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


class SynthesisConfig:
    """
    Value object consumed by both synthesizers, the supervisor and the aggregator.
    """
    def __init__(self, **overrides):
        values = dict(DEFAULTS)
        unknown = set(overrides) - set(values)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}", details={'keys': sorted(unknown)})
        values.update({k: v for k, v in overrides.items() if v is not None})

        self.enabled = _as_bool(values['enabled'])
        self.mode = self._pick_mode(values['mode'])
        self.debug = _as_bool(values['debug'])
        self.summary_style = self._pick('summary_style', values['summary_style'], STYLES)
        self.max_summary_length = self._positive_int('max_summary_length', values['max_summary_length'], DEFAULT_MAX_SUMMARY_LENGTH)
        self.include_technical_details = _as_bool(values['include_technical_details'])
        self.prioritize_recent_work = _as_bool(values['prioritize_recent_work'])
        self.fallback_strategy = self._pick('fallback_strategy', values['fallback_strategy'], FALLBACK_STRATEGIES)
        self.max_workers = self._positive_int('max_workers', values['max_workers'], 1)
        self.base_url = str(values['base_url']).rstrip('/')
        self.remote_model = str(values['remote_model'])
        timeout = values['timeout']
        self.timeout = float(timeout) if timeout else (DEBUG_TIMEOUT if self.debug else DEFAULT_TIMEOUT)
        self.max_retries = max(0, int(values['max_retries']))
        self.backoff_base = max(0.0, float(values['backoff_base']))

    @staticmethod
    def _pick(name: str, value: Any, allowed) -> str:
        v = str(value or '').strip().lower()
        if v in allowed:
            return v
        logger.warning("invalid %s %r, using %s", name, value, DEFAULTS[name])
        return DEFAULTS[name]

    @staticmethod
    def _pick_mode(value: Any) -> str:
        v = str(value or '').strip().lower()
        v = MODE_ALIASES.get(v, v)
        if v in MODES:
            return v
        logger.warning("invalid mode %r, using %s", value, DEFAULTS['mode'])
        return DEFAULTS['mode']

    @staticmethod
    def _positive_int(name: str, value: Any, default: int) -> int:
        try:
            v = int(value)
        except (TypeError, ValueError):
            v = 0
        if v <= 0:
            logger.warning("invalid %s %r, using %s", name, value, default)
            return default
        return v

    def include_technical_keywords(self) -> bool:
        """Technology names appear in output only for the technical style."""
        return self.include_technical_details and self.summary_style == 'technical'

    def replace(self, **changes) -> 'SynthesisConfig':
        values = self.to_dict()
        values.update(changes)
        return SynthesisConfig(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {k: getattr(self, k) for k in DEFAULTS}

    def __repr__(self):
        return f"SynthesisConfig(mode={self.mode!r}, style={self.summary_style!r}, max_summary_length={self.max_summary_length})"


def default_config_path() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), 'config', CONFIG_FILENAME)


def _flatten_llm_section(doc: Mapping[str, Any]) -> Dict[str, Any]:
    section = doc.get('llm') if isinstance(doc.get('llm'), dict) else doc
    values = {k: v for k, v in section.items() if k in DEFAULTS}
    remote = section.get('remote') or section.get('ollama') or {}
    if isinstance(remote, dict):
        for src, dst in (('base_url', 'base_url'), ('model', 'remote_model'), ('timeout', 'timeout'), ('max_retries', 'max_retries'), ('backoff_base', 'backoff_base')):
            if remote.get(src) is not None:
                values[dst] = remote[src]
    return values


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> SynthesisConfig:
    """
    Build a SynthesisConfig from YAML plus environment overrides.
    A missing or unreadable file yields defaults.
    """
    path = path or default_config_path()
    environ = os.environ if environ is None else environ
    values: Dict[str, Any] = {}
    if os.path.exists(path):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                doc = yaml.safe_load(f) or {}
            if isinstance(doc, dict):
                values.update(_flatten_llm_section(doc))
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("could not read config %s: %s; using defaults", path, exc)

    for env_name, key, convert in ENV_OVERRIDES:
        raw = environ.get(env_name)
        if raw is None or raw == '':
            continue
        try:
            values[key] = convert(raw)
        except ValueError:
            logger.warning("ignoring %s=%r: not a valid %s", env_name, raw, convert.__name__)
    if environ.get('STANDUP_DEBUG'):
        values['debug'] = _as_bool(environ['STANDUP_DEBUG'])
    return SynthesisConfig(**values)


__all__ = ["SynthesisConfig", "load_config", "default_config_path", "STYLES", "FALLBACK_STRATEGIES"]
