"""Configuration management for the methodology assistant."""

import json
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from methodassist.core.logging import get_logger

logger = get_logger("methodassist.config")

CONFIG_HOME = Path.home() / ".methodassist"
PROJECT_CONFIG_NAME = ".methodassist.yaml"

PROVIDERS = ("openai", "openrouter", "qwen", "ollama", "auto")
OUTPUT_FORMATS = ("markdown", "json", "yaml")


def _string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {value!r}")
    return value


def _integer(minimum: int) -> Callable[[Any], int]:
    def check(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
            raise ValueError(f"expected an integer >= {minimum}, got {value!r}")
        return value

    return check


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected a number, got {value!r}")
    return float(value)


def _flag(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected true or false, got {value!r}")
    return value


def _choice(choices: tuple[str, ...]) -> Callable[[Any], str]:
    def check(value: Any) -> str:
        if not isinstance(value, str) or value.lower() not in choices:
            raise ValueError(f"expected one of {', '.join(choices)}, got {value!r}")
        return value.lower()

    return check


# Accepted config keys and the check applied to file values
FIELD_CHECKS: dict[str, Callable[[Any], Any]] = {
    "provider": _choice(PROVIDERS),
    "model": _string,
    "temperature": _number,
    "seed": _integer(0),
    "base_url": _string,
    "api_key": _string,
    "max_retries": _integer(0),
    "timeout_ms": _integer(1),
    "output_format": _choice(OUTPUT_FORMATS),
    "cache_dir": _string,
    "history_dir": _string,
    "use_cache": _flag,
    "record_history": _flag,
}


class Config:
    """Configuration manager with hierarchy: CLI args > project config > user config > defaults."""

    def __init__(self):
        """Initialize configuration with default values."""
        self.provider: str = "auto"
        self.model: Optional[str] = None
        self.temperature: float = 0.0
        self.seed: Optional[int] = None
        self.base_url: Optional[str] = None
        self.api_key: Optional[str] = None
        self.max_retries: int = 0
        self.timeout_ms: int = 60_000
        self.output_format: str = "markdown"
        self.cache_dir: Optional[str] = None
        self.history_dir: Optional[str] = None
        self.use_cache: bool = True
        self.record_history: bool = True

    @classmethod
    def load(
        cls,
        cli_args: Optional[dict[str, Any]] = None,
        config_file: Optional[Path] = None,
    ) -> "Config":
        """
        Load configuration from hierarchy: CLI args > explicit file > project config > user config > defaults.

        Args:
            cli_args: Dictionary of CLI arguments to override config
            config_file: Explicit configuration file

        Returns:
            Config instance with loaded values
        """
        config = cls()

        user_config_path = CONFIG_HOME / "config.yaml"
        if user_config_path.exists():
            config._load_file(user_config_path)

        project_config_path = Path.cwd() / PROJECT_CONFIG_NAME
        if project_config_path.exists():
            config._load_file(project_config_path)

        if config_file is not None:
            config._load_file(Path(config_file))

        if cli_args:
            for key, value in cli_args.items():
                if value is not None and hasattr(config, key):
                    setattr(config, key, value)

        return config

    def _load_file(self, config_path: Path) -> None:
        """Load configuration from a YAML or JSON file; unreadable files and invalid values are logged and skipped."""
        try:
            content = config_path.read_text(encoding="utf-8")
            if config_path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(content)
            elif config_path.suffix == ".json":
                data = json.loads(content)
            else:
                logger.warning(f"Skipping config file with unknown format: {config_path}")
                return
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read config file {config_path}: {e}")
            return

        if not isinstance(data, dict):
            return

        for key, value in data.items():
            check = FIELD_CHECKS.get(key)
            if check is None:
                logger.warning(f"Ignoring unknown config key {key!r} in {config_path}")
                continue
            if value is None:
                continue
            try:
                setattr(self, key, check(value))
            except ValueError as e:
                logger.warning(f"Ignoring invalid value for {key!r} in {config_path}: {e}")

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "provider": self.provider,
            "model": self.model,
            "temperature": self.temperature,
            "seed": self.seed,
            "base_url": self.base_url,
            "api_key": self.api_key,
            "max_retries": self.max_retries,
            "timeout_ms": self.timeout_ms,
            "output_format": self.output_format,
            "cache_dir": self.cache_dir,
            "history_dir": self.history_dir,
            "use_cache": self.use_cache,
            "record_history": self.record_history,
        }

    def save(self, path: Path, format: str = "yaml") -> None:
        """
        Save configuration to file.

        Args:
            path: Path to save config file
            format: Format to save as ('yaml' or 'json')
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        # Remove None values for cleaner config
        data = {k: v for k, v in self.to_dict().items() if v is not None}

        if format == "yaml":
            content = yaml.dump(data, default_flow_style=False, sort_keys=False)
        else:
            content = json.dumps(data, indent=2)

        path.write_text(content, encoding="utf-8")

    def get_cache_dir(self) -> Path:
        """Get explanation cache directory, creating it if needed."""
        dir_path = Path(self.cache_dir) if self.cache_dir else CONFIG_HOME / "cache"
        dir_path.mkdir(parents=True, exist_ok=True)
        return dir_path

    def get_history_dir(self) -> Path:
        """Get task history directory, creating it if needed."""
        dir_path = Path(self.history_dir) if self.history_dir else CONFIG_HOME / "history"
        dir_path.mkdir(parents=True, exist_ok=True)
        return dir_path
