"""Project configuration model for Rulesmith.

Captures rulesmith.yaml fields with sensible defaults for the
analysis endpoint, request paths, and the token budget used by the
pre-flight estimator. Credentials may come from the environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field

CONFIG_FILE_NAME = "rulesmith.yaml"
ENDPOINT_ENV = "RULESMITH_ENDPOINT"
API_KEY_ENV = "RULESMITH_API_KEY"


class ConfigurationError(ValueError):
    """Raised when the client cannot be configured (missing endpoint or key)."""


class ClientConfig(BaseModel):
    """Connection settings for the remote analysis service."""

    model_config = {"extra": "forbid"}

    endpoint: str | None = None
    api_key: str | None = None
    quick_path: str = "/functions/v1/openai-chatcompletion"
    stream_path: str = "/functions/v1/openai-assistants-interpreter"
    timeout_seconds: float = Field(default=300.0, gt=0)
    file_name: str = "transactions.csv"


class EstimatorConfig(BaseModel):
    """Token budget and sampling targets for the pre-flight estimator.

    ``max_tokens`` or ``target_tokens`` set to None disables the
    token-based trigger or ratio respectively, leaving a pure record cap.
    """

    model_config = {"extra": "forbid"}

    max_records: int = Field(default=1000, ge=0)
    max_tokens: int | None = Field(default=50000, ge=0)
    target_records: int = Field(default=800, ge=0)
    target_tokens: int | None = Field(default=40000, ge=0)
    cost_per_k_tokens: float = Field(default=0.01, ge=0.0)


class ProjectConfig(BaseModel):
    """Project-level configuration loaded from rulesmith.yaml."""

    model_config = {"extra": "forbid"}

    client: ClientConfig = Field(default_factory=ClientConfig)
    estimator: EstimatorConfig = Field(default_factory=EstimatorConfig)


def find_project_root(start: Path | None = None) -> Path:
    """Walk up from start (default: cwd) looking for rulesmith.yaml.

    Args:
        start: Starting path (file or directory). Defaults to cwd.

    Returns:
        Path to the directory containing rulesmith.yaml, or cwd if none is found.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    while current != current.parent:
        if (current / CONFIG_FILE_NAME).exists():
            return current
        current = current.parent
    return Path.cwd()


def load_project_config(project_root: Path | None = None) -> ProjectConfig:
    """Load ProjectConfig from rulesmith.yaml. Returns defaults if not found.

    Args:
        project_root: Path to the project root directory. If None,
            uses find_project_root() to locate it.

    Returns:
        Validated ProjectConfig instance.
    """
    if project_root is None:
        project_root = find_project_root()
    config_path = project_root / CONFIG_FILE_NAME
    if not config_path.exists():
        return ProjectConfig()
    import yaml

    raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if raw is None:
        return ProjectConfig()
    return ProjectConfig.model_validate(raw)


def resolve_client_config(
    config: ClientConfig | None = None,
    environ: Mapping[str, str] | None = None,
) -> ClientConfig:
    """Merge environment overrides into a ClientConfig and check it is usable.

    RULESMITH_ENDPOINT and RULESMITH_API_KEY take precedence over file values.

    Args:
        config: Base configuration (defaults when None).
        environ: Environment mapping (defaults to os.environ).

    Returns:
        ClientConfig with endpoint and api_key populated.

    Raises:
        ConfigurationError: If the endpoint or API key is missing.
    """
    config = config or ClientConfig()
    env = os.environ if environ is None else environ

    updates: dict[str, str] = {}
    if env.get(ENDPOINT_ENV):
        updates["endpoint"] = env[ENDPOINT_ENV]
    if env.get(API_KEY_ENV):
        updates["api_key"] = env[API_KEY_ENV]
    resolved = config.model_copy(update=updates)

    if not resolved.endpoint:
        raise ConfigurationError(
            f"Analysis endpoint not configured. Set {ENDPOINT_ENV} "
            f"or client.endpoint in {CONFIG_FILE_NAME}."
        )
    if not resolved.api_key:
        raise ConfigurationError(
            f"API key not configured. Set {API_KEY_ENV} "
            f"or client.api_key in {CONFIG_FILE_NAME}."
        )
    return resolved
