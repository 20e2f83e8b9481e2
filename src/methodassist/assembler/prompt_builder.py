"""Prompt construction for task generation and rule explanation."""

from typing import NamedTuple, Union

from methodassist.catalog.rules import SPLIT_RULE
from methodassist.catalog.stages import STAGES
from methodassist.core.validator import parse_input
from methodassist.schemas.rule import ExplanationRequest
from methodassist.schemas.task import (
    MAX_ESTIMATE,
    MIN_ESTIMATE,
    GenerationRequest,
    Priority,
    Risk,
    Stage,
)

TASK_SYSTEM_TEMPLATE = """You are a specialized methodology assistant. Your task is to generate a single, concrete, and actionable development task based on the user's high-level goal, ensuring it strictly adheres to the methodology principles.

1. The generated task must fit the goal of the current stage.
2. The task's estimate MUST be a number between {min_estimate} and {max_estimate}, strictly respecting the '{split_rule}': tasks longer than {max_estimate} days must be split.
3. The output MUST be a valid JSON object matching the provided schema.

Current Methodology Stage: {stage_number}. {stage_title} ({stage})
Stage Goal: {stage_goal}

Output Risk should be one of: {risks}.
Output Priority should be one of: {priorities} ({priority_labels})."""

TASK_USER_TEMPLATE = (
    'The current stage is "{stage}". I need a concrete, actionable task for the '
    'following high-level objective: "{goal}". Generate the task details.'
)

EXPLANATION_SYSTEM_PROMPT = (
    "You are a methodology expert. Your task is to provide a clear, concise "
    "explanation of why an adaptive rule is important in a professional working "
    "methodology. Explain the business value, technical implications, and how it "
    "helps teams maintain quality and velocity."
)

EXPLANATION_USER_TEMPLATE = """Explain the following methodology rule and why it's important:

Rule: {rule_title}
Description: {rule_text}

Provide a 2-3 paragraph explanation with practical examples."""


class PromptPair(NamedTuple):
    """System and user prompt for one generation call."""

    system: str
    user: str


class PromptBuilder:
    """Builds prompts from caller input and the static catalogs.

    Pure string composition: the same input always yields the same prompts.
    """

    def build_task_prompt(self, goal: str, stage: Union[Stage, str]) -> PromptPair:
        """
        Build prompts for generating a task.

        Raises:
            ValidationError: If the goal is empty or the stage unknown
        """
        request = parse_input(GenerationRequest, goal=goal, stage=stage)
        info = STAGES[request.stage]

        system = TASK_SYSTEM_TEMPLATE.format(
            min_estimate=MIN_ESTIMATE,
            max_estimate=MAX_ESTIMATE,
            split_rule=SPLIT_RULE.title,
            stage_number=info.number,
            stage_title=info.title,
            stage=request.stage.value,
            stage_goal=info.goal,
            risks=", ".join(risk.value for risk in Risk),
            priorities=", ".join(p.value for p in Priority),
            priority_labels=", ".join(f"{p.value} = {p.label}" for p in Priority),
        )
        user = TASK_USER_TEMPLATE.format(stage=request.stage.value, goal=request.goal)
        return PromptPair(system, user)

    def build_explanation_prompt(self, rule_title: str, rule_text: str) -> PromptPair:
        """
        Build prompts for explaining a rule.

        Raises:
            ValidationError: If the title or text is empty
        """
        request = parse_input(ExplanationRequest, rule_title=rule_title, rule_text=rule_text)
        user = EXPLANATION_USER_TEMPLATE.format(
            rule_title=request.rule_title, rule_text=request.rule_text
        )
        return PromptPair(EXPLANATION_SYSTEM_PROMPT, user)

