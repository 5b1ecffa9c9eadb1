"""
RepCycle API - Configuration Package.

Training rule thresholds derived from settings.
"""

from app.config.rules import (
    ProgressionRules,
    RegenerationRules,
    progression_rules_from_settings,
    regeneration_rules_from_settings,
)

__all__ = [
    "ProgressionRules",
    "RegenerationRules",
    "progression_rules_from_settings",
    "regeneration_rules_from_settings",
]
