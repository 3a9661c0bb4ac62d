"""Anonymization detection.

The classifier is pluggable: the pattern classifier below only inspects the
user agent, which is all a server sees without an IP intelligence feed.
Deployments with such a feed subclass AnonymityClassifier.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

from loguru import logger

from citadel_engine.config.trust_policy import ANONYMITY_PATTERNS
from citadel_engine.data_management.schemas import DeviceSignature


@dataclass(frozen=True)
class AnonymitySignals:
    vpn: bool = False
    tor: bool = False
    proxy: bool = False

    @property
    def any(self) -> bool:
        return self.vpn or self.tor or self.proxy


class AnonymityClassifier(ABC):
    @abstractmethod
    def classify(self, signature: DeviceSignature) -> AnonymitySignals:
        """Return which anonymization indicators the signature shows."""


class PatternAnonymityClassifier(AnonymityClassifier):
    """Case-insensitive regex match over the user agent.

    A single string can trigger several indicators ("proxy" matches both
    the vpn and proxy patterns); the penalties then stack.
    """

    def __init__(self, patterns: Optional[Dict[str, str]] = None):
        raw = patterns or ANONYMITY_PATTERNS
        self.patterns = {name: re.compile(rx, re.IGNORECASE) for name, rx in raw.items()}
        self.logger = logger.bind(component="AnonymityClassifier")

    def _matches(self, name: str, user_agent: str) -> bool:
        pattern = self.patterns.get(name)
        return bool(pattern and pattern.search(user_agent))

    def classify(self, signature: DeviceSignature) -> AnonymitySignals:
        user_agent = signature.user_agent or ""
        signals = AnonymitySignals(
            vpn=self._matches("vpn", user_agent),
            tor=self._matches("tor", user_agent),
            proxy=self._matches("proxy", user_agent),
        )
        if signals.any:
            self.logger.debug(
                "Anonymization indicators found",
                vpn=signals.vpn,
                tor=signals.tor,
                proxy=signals.proxy,
            )
        return signals
