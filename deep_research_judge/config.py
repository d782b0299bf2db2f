"""Settings loaded from environment variables, plus the evaluation config tree."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from deep_research_judge.contracts import EvaluatorRole


def _load_env() -> None:
    """Load .env from project root if it exists."""
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)


_load_env()


# --- Default tables ---

PLAN_WEIGHTS: dict[str, float] = {
    "intentAlignment": 0.50,
    "queryCoverage": 0.35,
    "scopeAppropriateness": 0.15,
}

RETRIEVAL_WEIGHTS: dict[str, float] = {
    "contextRecall": 0.35,
    "contextPrecision": 0.30,
    "sourceQuality": 0.20,
    "actionableInformation": 0.15,
}

ANSWER_WEIGHTS: dict[str, float] = {
    "faithfulness": 0.35,
    "answerRelevance": 0.30,
    "completeness": 0.20,
    "accuracy": 0.15,
}


@dataclass(frozen=True)
class PlanEvaluationConfig:
    enabled: bool = True
    iteration_enabled: bool = True
    max_attempts: int = 3
    pass_threshold: float = 0.7
    weights: dict[str, float] = field(default_factory=lambda: dict(PLAN_WEIGHTS))
    dimension_thresholds: dict[str, float] = field(
        default_factory=lambda: {
            "queryAccuracy": 0.6,
            "queryCoverage": 0.6,
            "intentAlignment": 0.6,
            "scopeAppropriateness": 0.5,
        }
    )
    timeout_s: float = 60.0


@dataclass(frozen=True)
class RetrievalEvaluationConfig:
    enabled: bool = True
    severe_threshold: float = 0.5
    weights: dict[str, float] = field(default_factory=lambda: dict(RETRIEVAL_WEIGHTS))
    timeout_s: float = 30.0


@dataclass(frozen=True)
class AnswerEvaluationConfig:
    enabled: bool = True
    major_failure_threshold: float = 0.5
    weights: dict[str, float] = field(default_factory=lambda: dict(ANSWER_WEIGHTS))
    dimension_thresholds: dict[str, float] = field(
        default_factory=lambda: {
            "depth": 0.6,
            "completeness": 0.7,
            "answerRelevance": 0.7,
            "faithfulness": 0.7,
            "accuracy": 0.6,
        }
    )
    timeout_s: float = 45.0


@dataclass(frozen=True)
class ConfidenceScoringConfig:
    judge_model: str = "claude-sonnet-4-6"  # claim extraction + entailment
    entailment_weight: float = 0.5
    su_score_weight: float = 0.3
    source_count_weight: float = 0.2
    ideal_source_count: int = 5
    similarity_threshold: float = 0.7
    max_passages_per_source: int = 3  # total cap is this x number of sources
    max_chunk_chars: int = 1000
    min_chunk_chars: int = 50
    embedding_concurrency: int = 4


def _default_role_models() -> dict[str, str]:
    return {role.value: "claude-sonnet-4-6" for role in EvaluatorRole}


@dataclass(frozen=True)
class EvaluationConfig:
    """Immutable configuration handed to every evaluation component."""

    enabled: bool = True
    role_models: dict[str, str] = field(default_factory=_default_role_models)
    escalation_model: str = "claude-opus-4-6"
    max_concurrent_judges: int = 4
    default_timeout_s: float = 60.0
    plan: PlanEvaluationConfig = field(default_factory=PlanEvaluationConfig)
    retrieval: RetrievalEvaluationConfig = field(default_factory=RetrievalEvaluationConfig)
    answer: AnswerEvaluationConfig = field(default_factory=AnswerEvaluationConfig)
    confidence: ConfidenceScoringConfig = field(default_factory=ConfidenceScoringConfig)

    def model_for(self, role: EvaluatorRole) -> str:
        return self.role_models.get(role.value, self.escalation_model)

    def timeout_for(self, context: str) -> float:
        """Timeout for a gateway context label, matched by substring."""
        label = context.lower()
        if "plan" in label:
            return self.plan.timeout_s
        if "retrieval" in label:
            return self.retrieval.timeout_s
        if "answer" in label:
            return self.answer.timeout_s
        return self.default_timeout_s


def _overlay(instance: Any, overrides: dict[str, Any], path: str = "") -> Any:
    """Return a copy of a frozen dataclass with overrides applied recursively."""
    names = {f.name: f for f in dataclasses.fields(instance)}
    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in names:
            raise ValueError(f"Unknown evaluation config key: {path}{key}")
        current = getattr(instance, key)
        if dataclasses.is_dataclass(current):
            if not isinstance(value, dict):
                raise ValueError(f"Expected a mapping for {path}{key}")
            changes[key] = _overlay(current, value, f"{path}{key}.")
        elif isinstance(current, dict):
            if not isinstance(value, dict):
                raise ValueError(f"Expected a mapping for {path}{key}")
            changes[key] = {**current, **value}
        else:
            changes[key] = value
    return dataclasses.replace(instance, **changes)


def load_evaluation_config(
    path: str | Path, base: EvaluationConfig | None = None
) -> EvaluationConfig:
    """Overlay a YAML file onto the default (or given) evaluation config.

    Nested mappings merge into the matching sub-config; unknown keys raise.
    """
    base = base or EvaluationConfig()
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Evaluation config {path} must be a mapping")
    return _overlay(base, data)


@dataclass(frozen=True)
class Settings:
    # API Keys
    anthropic_api_key: str = field(default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY", ""))

    # Models
    panel_model: str = field(
        default_factory=lambda: os.environ.get("PANEL_MODEL", "claude-sonnet-4-6")
    )
    light_model: str = field(
        default_factory=lambda: os.environ.get("LIGHT_MODEL", "claude-haiku-4-5-20251001")
    )
    escalation_model: str = field(
        default_factory=lambda: os.environ.get("ESCALATION_MODEL", "claude-opus-4-6")
    )

    # Limits
    max_concurrent_requests: int = field(
        default_factory=lambda: int(os.environ.get("MAX_CONCURRENT_REQUESTS", "5"))
    )

    # Embeddings
    embedding_backend: str = field(
        default_factory=lambda: os.environ.get("EMBEDDING_BACKEND", "fastembed")
    )
    embedding_model: str = field(
        default_factory=lambda: os.environ.get("EMBEDDING_MODEL", "BAAI/bge-small-en-v1.5")
    )
    ollama_url: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_URL", "http://localhost:11434")
    )

    # Persistence + run event log
    run_log_dir: str = field(default_factory=lambda: os.environ.get("RUN_LOG_DIR", "runs/"))
    records_dir: str = field(default_factory=lambda: os.environ.get("RECORDS_DIR", "records/"))

    # Optional YAML overlay for thresholds, weights and role models
    evaluation_config_path: str = field(
        default_factory=lambda: os.environ.get("EVALUATION_CONFIG_PATH", "")
    )

    def evaluation_config(self) -> EvaluationConfig:
        """Build the evaluation config: env-driven models, then the YAML overlay."""
        light_roles = {
            EvaluatorRole.SOURCE_QUALITY,
            EvaluatorRole.COVERAGE_COMPLETENESS,
            EvaluatorRole.ANSWER_RELEVANCE,
        }
        role_models = {
            role.value: self.light_model if role in light_roles else self.panel_model
            for role in EvaluatorRole
        }
        config = EvaluationConfig(
            role_models=role_models,
            escalation_model=self.escalation_model,
            max_concurrent_judges=self.max_concurrent_requests,
            confidence=ConfidenceScoringConfig(judge_model=self.panel_model),
        )
        if self.evaluation_config_path:
            config = load_evaluation_config(self.evaluation_config_path, base=config)
        return config

    def validate(self) -> list[str]:
        """Return list of validation errors. Empty list means valid."""
        errors = []
        if not self.anthropic_api_key:
            errors.append("ANTHROPIC_API_KEY is required")
        if self.max_concurrent_requests < 1:
            errors.append("MAX_CONCURRENT_REQUESTS must be >= 1")
        if self.embedding_backend not in ("fastembed", "ollama"):
            errors.append(
                f"EMBEDDING_BACKEND must be 'fastembed' or 'ollama', got '{self.embedding_backend}'"
            )
        if self.evaluation_config_path and not Path(self.evaluation_config_path).exists():
            errors.append(f"EVALUATION_CONFIG_PATH not found: {self.evaluation_config_path}")
        return errors

    def warnings(self) -> list[str]:
        """Return list of non-fatal configuration warnings."""
        warns: list[str] = []
        if self.escalation_model in (self.panel_model, self.light_model):
            warns.append(
                f"ESCALATION_MODEL={self.escalation_model} is also a panel model. "
                "Escalation is meant to reach a stronger judge."
            )
        if self.embedding_backend == "ollama" and self.embedding_model.startswith("BAAI/"):
            warns.append(
                f"EMBEDDING_MODEL={self.embedding_model} looks like a fastembed model; "
                "ollama usually serves 'nomic-embed-text'."
            )
        return warns


def get_settings() -> Settings:
    """Create Settings from current environment."""
    return Settings()
