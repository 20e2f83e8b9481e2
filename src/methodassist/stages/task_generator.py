"""Task generation flow."""

import time
from typing import Optional, Union

from methodassist.assembler.prompt_builder import PromptBuilder
from methodassist.core.errors import MethodologyError
from methodassist.core.llm_base import Generator
from methodassist.core.logging import get_logger
from methodassist.core.rule_engine import RuleEngine
from methodassist.core.validator import TaskSchemaValidator
from methodassist.schemas.task import GeneratedTask, Stage

logger = get_logger("methodassist.task_generator")


class TaskGenerator:
    """Generates one methodology-conformant task for a goal and stage."""

    def __init__(
        self,
        generator: Generator,
        prompt_builder: Optional[PromptBuilder] = None,
        validator: Optional[TaskSchemaValidator] = None,
        rule_engine: Optional[RuleEngine] = None,
    ):
        """
        Initialize task generator.

        Args:
            generator: Gateway to the generation provider
            prompt_builder: Prompt builder (default instance if None)
            validator: Task schema validator (default instance if None)
            rule_engine: Rule engine (default instance if None)
        """
        self.generator = generator
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.validator = validator or TaskSchemaValidator()
        self.rule_engine = rule_engine or RuleEngine()

    def generate(self, goal: str, stage: Union[Stage, str]) -> GeneratedTask:
        """
        Generate a task.

        Args:
            goal: High-level objective
            stage: Methodology stage name

        Returns:
            Validated GeneratedTask

        Raises:
            ValidationError: If goal or stage is invalid (no provider call is made)
            GenerationFailure: If the provider call fails
            SchemaViolation: If the output is malformed
            RuleViolation: If the output breaks a methodology rule
        """
        prompts = self.prompt_builder.build_task_prompt(goal, stage)
        stage_name = stage.value if isinstance(stage, Stage) else stage

        start_time = time.time()
        logger.log_pipeline_stage("task_generation", "started", methodology_stage=stage_name)
        try:
            raw = self.generator.generate(
                prompts.system, prompts.user, schema=self.validator.schema
            )
            candidate = self.validator.validate(raw)
            task = self.rule_engine.validate_task(candidate)
        except MethodologyError as e:
            logger.log_pipeline_stage(
                "task_generation",
                "failed",
                duration_ms=(time.time() - start_time) * 1000,
                methodology_stage=stage_name,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

        logger.log_pipeline_stage(
            "task_generation",
            "completed",
            duration_ms=(time.time() - start_time) * 1000,
            methodology_stage=stage_name,
            estimate=task.estimate,
        )
        return task
