"""
MMX form automation stages.
"""

from automation.settings import FormSettings
from automation.stages import STAGE_NAMES, build_stages, get_stage
from automation.timing import Delays, DEFAULT_DELAYS

__all__ = [
    "FormSettings",
    "STAGE_NAMES",
    "build_stages",
    "get_stage",
    "Delays",
    "DEFAULT_DELAYS",
]
