"""fastpath Configuration.

Includes:
- RouterConfig: Routing thresholds, model location, buffer sizes and logging

Environment Variables:
    FASTPATH_DETERMINISTIC_THRESHOLD: Minimum pattern confidence to execute
    FASTPATH_STATISTICAL_THRESHOLD: Classifier confidence to execute directly
    FASTPATH_STATISTICAL_MEDIUM_THRESHOLD: Classifier confidence worth extracting for
    FASTPATH_MODEL_PATH: Naive Bayes pipeline artifact (joblib)
    FASTPATH_EXECUTION_TIMEOUT: Seconds to wait for async tool handlers
    FASTPATH_LOG_DIR: Directory for rotating log files
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.intent.taxonomy import ConfidenceThresholds

CONFIG_DIR_NAME = ".fastpath"
CONFIG_FILE_NAME = "config.yaml"


class RouterConfig(BaseSettings):
    """Router configuration with environment variable support.

    Configuration is loaded from environment variables with FASTPATH_ prefix.
    For example, FASTPATH_STATISTICAL_THRESHOLD sets statistical_threshold.

    Precedence (highest to lowest):
        1. Config file (.fastpath/config.yaml, ``router:`` section)
        2. Environment variables (FASTPATH_*)
        3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="FASTPATH_",
        extra="ignore",
        protected_namespaces=(),  # Allow model_path field name
    )

    project_path: Path = Field(default_factory=Path.cwd, exclude=True)

    # Tier thresholds
    deterministic_threshold: float = Field(
        default=ConfidenceThresholds.DETERMINISTIC, ge=0.0, le=1.0
    )
    statistical_threshold: float = Field(
        default=ConfidenceThresholds.STATISTICAL, ge=0.0, le=1.0
    )
    statistical_medium_threshold: float = Field(
        default=ConfidenceThresholds.STATISTICAL_MEDIUM, ge=0.0, le=1.0
    )

    # Statistical model artifact
    model_path: Path = Field(
        default_factory=lambda: Path("~/.fastpath/models/intent_model.joblib").expanduser()
    )

    # Buffers and limits
    telemetry_capacity: int = Field(default=1000, ge=1)
    tool_telemetry_capacity: int = Field(default=500, ge=1)
    max_query_length: int = Field(default=10_000, ge=1)
    telemetry_query_length: int = Field(default=100, ge=0)

    # None waits for tool handlers indefinitely
    execution_timeout: Optional[float] = Field(default=None, gt=0)

    log_dir: Path = Field(default_factory=lambda: Path("~/.fastpath/logs").expanduser())

    @model_validator(mode="after")
    def _check_threshold_order(self) -> "RouterConfig":
        if self.statistical_medium_threshold > self.statistical_threshold:
            raise ValueError(
                "statistical_medium_threshold must not exceed statistical_threshold "
                f"({self.statistical_medium_threshold} > {self.statistical_threshold})"
            )
        return self

    @property
    def config_file(self) -> Path:
        return self.project_path / CONFIG_DIR_NAME / CONFIG_FILE_NAME

    @classmethod
    def load(cls, path: Path) -> "RouterConfig":
        """Load configuration from .fastpath/config.yaml if it exists.

        Args:
            path: Project path to load configuration for

        Returns:
            RouterConfig with file values applied over environment/defaults
        """
        from ruamel.yaml import YAML

        config_file = path / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        overrides: dict = {}

        if config_file.exists():
            yaml = YAML(typ="safe")
            with config_file.open() as f:
                data = yaml.load(f)

            if data and isinstance(data.get("router"), dict):
                overrides = dict(data["router"])

        return cls(project_path=path, **overrides)

    def save(self) -> None:
        """Save configuration to .fastpath/config.yaml in the project path.

        Only explicitly set fields are written, so defaults and later
        FASTPATH_* environment values still apply on the next load.
        """
        from ruamel.yaml import YAML

        config_dir = self.project_path / CONFIG_DIR_NAME
        config_dir.mkdir(parents=True, exist_ok=True)

        yaml = YAML()
        yaml.default_flow_style = False

        data = {"router": self.model_dump(mode="json", exclude_unset=True)}

        with self.config_file.open("w") as f:
            yaml.dump(data, f)


__all__ = ["RouterConfig"]
