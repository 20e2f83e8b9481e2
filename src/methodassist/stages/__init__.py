"""Request flows."""

from methodassist.stages.rule_explainer import RuleExplainer
from methodassist.stages.task_generator import TaskGenerator

__all__ = ["RuleExplainer", "TaskGenerator"]
