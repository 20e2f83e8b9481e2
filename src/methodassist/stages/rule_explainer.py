"""Rule explanation flow."""

from typing import Optional

from methodassist.assembler.prompt_builder import PromptBuilder
from methodassist.core.cache import ExplanationCache
from methodassist.core.errors import GenerationFailure
from methodassist.core.llm_base import Generator
from methodassist.core.logging import get_logger

logger = get_logger("methodassist.rule_explainer")


class RuleExplainer:
    """
    Produces cached explanations of adaptive rules.

    Unlike task generation, a provider failure here does not raise: the
    caller gets an empty explanation and can carry on. Invalid input still
    raises ValidationError.
    """

    def __init__(
        self,
        generator: Generator,
        cache: Optional[ExplanationCache] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        self.generator = generator
        self.cache = cache or ExplanationCache()
        self.prompt_builder = prompt_builder or PromptBuilder()

    def explain(self, rule_title: str, rule_text: str) -> str:
        """
        Explain a rule.

        Returns:
            Explanation text, or "" if the provider failed

        Raises:
            ValidationError: If the title or text is empty
        """
        prompts = self.prompt_builder.build_explanation_prompt(rule_title, rule_text)

        def generate() -> str:
            return self.generator.generate(prompts.system, prompts.user)

        try:
            return self.cache.get_or_create(rule_title, rule_text, generate)
        except GenerationFailure as e:
            logger.warning(
                f"Falling back to empty explanation for {rule_title!r}: {e}",
                context={"rule_title": rule_title, "attempts": e.attempts},
            )
            return ""
