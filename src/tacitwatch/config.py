"""Configuration management using pydantic-settings."""

import tomllib
from datetime import timedelta
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .domain.extraction import DEFAULT_VARIANTS, SelectionPolicy
from .domain.models import DEFAULT_ENGINE_CONFIGS, EngineConfig, TaskType

CONFIG_PATH = Path("~/.config/tacitwatch/config.toml").expanduser()
DEFAULT_WORK_DIR = "~/.local/share/tacitwatch"


class LLMProvider(str, Enum):
    """Available LLM providers."""

    NONE = "none"
    OLLAMA = "ollama"
    CLAUDE_API = "claude-api"


class LLMConfig(BaseSettings):
    """LLM provider configuration."""

    model_config = SettingsConfigDict(env_prefix="TACITWATCH_LLM_")

    provider: LLMProvider = LLMProvider.NONE
    model: str = "gemma3:4b"
    ollama_url: str = "http://localhost:11434"
    timeout: float = 120.0
    max_chars: int = 8000


class PathsConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TACITWATCH_PATHS_")

    work_dir: Path = Path(DEFAULT_WORK_DIR)

    @field_validator("work_dir", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser()

    @property
    def store_file(self) -> Path:
        return self.work_dir / "state.json"

    @property
    def documents(self) -> Path:
        return self.work_dir / "documents"

    @property
    def queue(self) -> Path:
        return self.work_dir / "queue"

    @property
    def failed(self) -> Path:
        return self.work_dir / "failed"


class EngineSettings(BaseModel):
    name: str
    psm: int
    oem: int


class OcrConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TACITWATCH_OCR_")

    languages: str = "fra+eng"
    dpi: int = 400
    native_min_length: int = 50
    native_min_ratio: float = 0.3
    early_exit_confidence: float = 85.0
    low_quality_threshold: float = 70.0
    min_ai_confidence: float = 60.0
    variants: list[str] = list(DEFAULT_VARIANTS)
    engines: list[EngineSettings] = [
        EngineSettings(name=e.name, psm=e.psm, oem=e.oem) for e in DEFAULT_ENGINE_CONFIGS
    ]
    selection_policy: SelectionPolicy = SelectionPolicy.FIRST_ABOVE_THRESHOLD
    enable_preprocessing: bool = True
    subprocess_timeout: float = 120.0
    cache_results: bool = True
    cache_ttl: float = 3600.0

    @property
    def engine_configs(self) -> list[EngineConfig]:
        return [EngineConfig(name=e.name, psm=e.psm, oem=e.oem) for e in self.engines]


class PatternConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TACITWATCH_PATTERNS_")

    detection_ratio: float = 0.3
    explicit_min_matches: int = 2
    corroborated_explicit: bool = True
    max_contract_days: int = 3650
    amount_tolerance: float = 0.15


class BreakerConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TACITWATCH_BREAKER_")

    failure_threshold: int = 5
    recovery_timeout: float = 300.0
    success_threshold: int = 2
    state_ttl: float = 3600.0


class StoreBackend(str, Enum):
    MEMORY = "memory"
    FILE = "file"


class StoreConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TACITWATCH_STORE_")

    backend: StoreBackend = StoreBackend.FILE


class RecoveryConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TACITWATCH_RECOVERY_")

    stale_after_hours: float = 2.0
    max_recovery_attempts: int = 3
    extraction_retry_minutes: float = 2.0
    analysis_retry_minutes: float = 1.0
    unavailable_retry_minutes: float = 10.0
    retry_task_types: list[str] = [t.value for t in TaskType]
    retry_window_hours: float = 6.0
    retention_days: float = 3.0
    task_retry_minutes: float = 5.0

    @property
    def stale_after(self) -> timedelta:
        return timedelta(hours=self.stale_after_hours)

    @property
    def retry_window(self) -> timedelta:
        return timedelta(hours=self.retry_window_hours)

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.retention_days)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TACITWATCH_")

    paths: PathsConfig = PathsConfig()
    ocr: OcrConfig = OcrConfig()
    patterns: PatternConfig = PatternConfig()
    breaker: BreakerConfig = BreakerConfig()
    llm: LLMConfig = LLMConfig()
    store: StoreConfig = StoreConfig()
    recovery: RecoveryConfig = RecoveryConfig()


def load_settings(config_path: Path | None = None) -> Settings:
    """Load settings from TOML file, falling back to defaults."""
    path = config_path or CONFIG_PATH

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)

        return Settings(
            paths=PathsConfig(**data.get("paths", {})),
            ocr=OcrConfig(**data.get("ocr", {})),
            patterns=PatternConfig(**data.get("patterns", {})),
            breaker=BreakerConfig(**data.get("breaker", {})),
            llm=LLMConfig(**data.get("llm", {})),
            store=StoreConfig(**data.get("store", {})),
            recovery=RecoveryConfig(**data.get("recovery", {})),
        )

    return Settings()
