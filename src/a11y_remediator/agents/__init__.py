"""
Specialist agents and remote collaborators.

- base.py: SpecialistAgent protocol, BaseSpecialist, confidence scoring
- alt_text.py / navigation.py / contrast.py / focus.py / interaction.py:
  rule-family specialists
- generic_aria.py: catch-all handler used when no specialist matches
- remote.py: HTTP adapters for the scanner and DOM executor
"""

from .alt_text import AltTextSpecialist
from .base import BaseSpecialist, SpecialistAgent, confidence_tier, score
from .contrast import ContrastSpecialist
from .focus import FocusSpecialist
from .generic_aria import GenericAriaHandler
from .interaction import InteractionSpecialist
from .navigation import NavigationSpecialist
from .remote import DomExecutor, RemoteExecutor, RemoteScanner, Scanner

__all__ = [
    "AltTextSpecialist",
    "BaseSpecialist",
    "ContrastSpecialist",
    "DomExecutor",
    "FocusSpecialist",
    "GenericAriaHandler",
    "InteractionSpecialist",
    "NavigationSpecialist",
    "RemoteExecutor",
    "RemoteScanner",
    "Scanner",
    "SpecialistAgent",
    "confidence_tier",
    "score",
]
