"""Load settings.yaml into typed dataclasses. Detects configured API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    temperature: float = 0.7
    base_url: str | None = None


@dataclass
class PromptsConfig:
    system: str
    user: str


@dataclass
class DefaultsConfig:
    difficulty: str
    members: int
    min_members: int
    max_members: int
    provider: str
    output_dir: Path
    difficulties: list[str] = field(default_factory=lambda: ["easy", "medium", "hard"])


@dataclass
class DatabaseConfig:
    url: str
    echo: bool = False


@dataclass
class CacheConfig:
    max_sessions: int = 128
    ttl_sec: float = 3600.0


@dataclass
class InboxConfig:
    dir: Path
    archive_dir: Path


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    database: DatabaseConfig
    cache: CacheConfig
    inbox: InboxConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    available_providers: set[str] = field(default_factory=set)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing API keys but does not raise: with no usable backend the
    debate runs on simulated responses.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        difficulty=str(defaults_raw["difficulty"]),
        members=int(defaults_raw["members"]),
        min_members=int(defaults_raw["min_members"]),
        max_members=int(defaults_raw["max_members"]),
        provider=str(defaults_raw["provider"]),
        output_dir=Path(defaults_raw["output_dir"]),
        difficulties=[str(d) for d in defaults_raw.get("difficulties", ["easy", "medium", "hard"])],
    )
    if defaults.difficulty not in defaults.difficulties:
        raise ValueError(
            f"Default difficulty {defaults.difficulty!r} is not one of {defaults.difficulties}"
        )
    if not 1 <= defaults.min_members <= defaults.max_members:
        raise ValueError(
            f"Invalid member bounds: min={defaults.min_members}, max={defaults.max_members}"
        )

    database_raw = raw.get("database", {})
    database = DatabaseConfig(
        url=str(database_raw.get("url", "sqlite:///math_council.db")),
        echo=bool(database_raw.get("echo", False)),
    )

    cache_raw = raw.get("cache", {})
    cache = CacheConfig(
        max_sessions=int(cache_raw.get("max_sessions", 128)),
        ttl_sec=float(cache_raw.get("ttl_sec", 3600)),
    )

    inbox_raw = raw.get("inbox", {})
    inbox = InboxConfig(
        dir=Path(inbox_raw.get("dir", "./inbox")),
        archive_dir=Path(inbox_raw.get("archive_dir", "./inbox/archive")),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        system=prompts_raw["system"],
        user=prompts_raw["user"],
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw.get("models", {}).items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            temperature=float(model_raw.get("temperature", 0.7)),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s (set %s in .env)",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        database=database,
        cache=cache,
        inbox=inbox,
        models=models,
        prompts=prompts,
        available_providers=available_providers,
    )
