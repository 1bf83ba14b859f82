"""
Synthesis package: turn processed work into short standup narratives.

new_synthesizer() picks the implementation for a configuration:
embedded (rule-based), remote (generation service) or disabled.
"""

import threading
from typing import List, Optional, Union

from .config import SynthesisConfig, load_config
from .fallback import FallbackSupervisor
from .observer import DebugObserver
from .remote import RemoteSynthesizer
from .rule_based import DisabledSynthesizer, RuleBasedSynthesizer

Synthesizer = Union[RuleBasedSynthesizer, RemoteSynthesizer, DisabledSynthesizer]


def new_synthesizer(config: Optional[SynthesisConfig] = None, observer: Optional[DebugObserver] = None,
                    cancel_event: Optional[threading.Event] = None) -> Synthesizer:
    config = config or SynthesisConfig()
    if not config.enabled or config.mode == 'disabled':
        return DisabledSynthesizer(config)
    if config.mode == 'remote':
        return RemoteSynthesizer(config, observer=observer, cancel_event=cancel_event)
    return RuleBasedSynthesizer(config, observer=observer)


def test_connection(config: Optional[SynthesisConfig] = None) -> List[str]:
    """Liveness check for remote mode; embedded and disabled modes have nothing to check."""
    config = config or SynthesisConfig()
    if config.mode != 'remote' or not config.enabled:
        return []
    return RemoteSynthesizer(config).test_connection()


# keep pytest from collecting the helper when imported into a test module
test_connection.__test__ = False

__all__ = [
    "SynthesisConfig",
    "load_config",
    "FallbackSupervisor",
    "DebugObserver",
    "RuleBasedSynthesizer",
    "RemoteSynthesizer",
    "DisabledSynthesizer",
    "new_synthesizer",
    "test_connection",
]
