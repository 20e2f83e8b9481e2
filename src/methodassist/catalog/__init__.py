"""Static methodology catalogs."""

from methodassist.catalog.rules import PRINCIPLES, RULES, SPLIT_RULE, get_rule
from methodassist.catalog.stages import STAGES, StageInfo, get_stage, parse_stage

__all__ = [
    "PRINCIPLES",
    "RULES",
    "SPLIT_RULE",
    "STAGES",
    "StageInfo",
    "get_rule",
    "get_stage",
    "parse_stage",
]
