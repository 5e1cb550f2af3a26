"""Configuration system for faqdesk.

This module handles loading settings from environment variables and an INI
file, providing sensible defaults, and computing derived paths inside the
data directory. Components never call ``load_settings`` themselves; the
resulting ``Config`` is mapped onto them once in ``faqdesk.app``.
"""

from configparser import ConfigParser
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional
import os

from faqdesk.constants import (
    ANSWER_TOP_N,
    CLARIFY_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DIGEST_MAX_TOKENS,
    DOCUMENT_INSTRUCTION,
    EMBEDDING_DIMENSIONS,
    EXCERPT_MAX_CHARS,
    EXCERPT_MESSAGES,
    HEAD_FALLBACK_CHARS,
    JSON_TEMPERATURE,
    MARGIN_ACCEPT,
    MAX_HISTORY_TURNS,
    MAX_STEPS,
    MAX_TOKENS,
    MIN_SIMILARITY,
    MODEL_CONTEXT_LIMIT,
    QUERY_INSTRUCTION,
    RESERVED_OUTPUT_TOKENS,
    SAFETY_MARGIN_TOKENS,
    SPLIT_RATIO,
    STORE_HISTORY_LIMIT,
    STRONG_SIMILARITY,
    TICKET_MAX_TOKENS,
    TITLE_MAX_CHARS,
    TOP_K,
)


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# Schema: section -> key -> (type, default, min, max, description)
CONFIG_SCHEMA: dict[str, dict[str, tuple[type, Any, Any, Any, str]]] = {
    "retrieval": {
        "top_k": (int, TOP_K, 1, 100, "Candidates requested from the vector store"),
        "min_similarity": (float, MIN_SIMILARITY, 0.0, 1.0, "Similarity floor for candidates"),
        "strong_similarity": (float, STRONG_SIMILARITY, 0.0, 1.0, "Absolute accept threshold"),
        "margin_accept": (float, MARGIN_ACCEPT, 0.0, 1.0, "Top-1 vs top-2 accept margin"),
        "answer_top_n": (int, ANSWER_TOP_N, 1, 10, "Passages used to compose an answer"),
    },
    "embedding": {
        "dimensions": (int, EMBEDDING_DIMENSIONS, 1, 8192, "Expected embedding size"),
        "query_instruction": (str, QUERY_INSTRUCTION, None, None, "Prefix for query texts"),
        "document_instruction": (
            str,
            DOCUMENT_INSTRUCTION,
            None,
            None,
            "Prefix for document texts",
        ),
    },
    "history": {
        "max_turns": (int, MAX_HISTORY_TURNS, 1, 1000, "Messages kept after merging"),
        "store_fetch_limit": (int, STORE_HISTORY_LIMIT, 1, 1000, "Persisted messages read"),
    },
    "context": {
        "model_limit": (int, MODEL_CONTEXT_LIMIT, 512, 2_000_000, "Model context window"),
        "reserved_output_tokens": (int, RESERVED_OUTPUT_TOKENS, 0, 100_000, "Response reserve"),
        "safety_margin_tokens": (int, SAFETY_MARGIN_TOKENS, 0, 100_000, "Estimator margin"),
        "split_ratio": (float, SPLIT_RATIO, 0.1, 0.95, "Share of messages summarized"),
        "digest_max_tokens": (int, DIGEST_MAX_TOKENS, 50, 4000, "Digest response cap"),
        "head_fallback_chars": (int, HEAD_FALLBACK_CHARS, 100, 100_000, "Head cut without LLM"),
    },
    "ticket": {
        "title_max_chars": (int, TITLE_MAX_CHARS, 20, TITLE_MAX_CHARS, "Ticket title length cap"),
        "max_steps": (int, MAX_STEPS, 1, MAX_STEPS, "Steps kept from the generator"),
        "excerpt_messages": (int, EXCERPT_MESSAGES, 1, 200, "Messages in fallback excerpt"),
        "excerpt_max_chars": (int, EXCERPT_MAX_CHARS, 100, 100_000, "Fallback excerpt cap"),
        "max_tokens": (int, TICKET_MAX_TOKENS, 100, 8192, "Ticket generation response cap"),
    },
    "llm": {
        "max_tokens": (int, MAX_TOKENS, 16, 32768, "Max response tokens"),
        "default_temperature": (float, DEFAULT_TEMPERATURE, 0.0, 2.0, "Default LLM temperature"),
        "json_temperature": (float, JSON_TEMPERATURE, 0.0, 1.0, "Temperature for JSON output"),
        "clarify_max_tokens": (int, CLARIFY_MAX_TOKENS, 16, 1000, "Clarifying question cap"),
    },
}


@dataclass(frozen=True)
class RetrievalConfig:
    """Candidate retrieval and confidence gate configuration."""

    top_k: int
    min_similarity: float
    strong_similarity: float
    margin_accept: float
    answer_top_n: int


@dataclass(frozen=True)
class EmbeddingConfig:
    """Embedding configuration."""

    dimensions: int
    query_instruction: str
    document_instruction: str


@dataclass(frozen=True)
class HistoryConfig:
    """History merging configuration."""

    max_turns: int
    store_fetch_limit: int


@dataclass(frozen=True)
class ContextConfig:
    """Context packing configuration."""

    model_limit: int
    reserved_output_tokens: int
    safety_margin_tokens: int
    split_ratio: float
    digest_max_tokens: int
    head_fallback_chars: int


@dataclass(frozen=True)
class TicketConfig:
    """Ticket draft configuration."""

    title_max_chars: int
    max_steps: int
    excerpt_messages: int
    excerpt_max_chars: int
    max_tokens: int


@dataclass(frozen=True)
class LLMConfig:
    """LLM client configuration."""

    max_tokens: int
    default_temperature: float
    json_temperature: float
    clarify_max_tokens: int


_SECTION_TYPES: dict[str, type] = {
    "retrieval": RetrievalConfig,
    "embedding": EmbeddingConfig,
    "history": HistoryConfig,
    "context": ContextConfig,
    "ticket": TicketConfig,
    "llm": LLMConfig,
}


def _load_section(
    parser: ConfigParser, section: str, schema: dict[str, tuple[type, Any, Any, Any, str]]
) -> dict[str, Any]:
    """Load and validate a configuration section.

    Args:
        parser: ConfigParser instance with loaded config
        section: Section name to load
        schema: Schema definition for the section

    Returns:
        Dictionary of validated configuration values

    Raises:
        ConfigError: If validation fails
    """
    result = {}

    for key, (typ, default, min_val, max_val, _) in schema.items():
        if parser.has_option(section, key):
            raw_value = parser.get(section, key)
            value: int | float | str
            try:
                if typ is int:
                    value = int(raw_value)
                elif typ is float:
                    value = float(raw_value)
                else:
                    value = raw_value
            except ValueError as e:
                raise ConfigError(
                    f"Invalid value for [{section}].{key}: {raw_value!r} (expected {typ.__name__})"
                ) from e
        else:
            value = default

        if typ in (int, float) and value is not None:
            if min_val is not None and value < min_val:
                raise ConfigError(
                    f"Value for [{section}].{key} is {value}, but minimum is {min_val}"
                )
            if max_val is not None and value > max_val:
                raise ConfigError(
                    f"Value for [{section}].{key} is {value}, but maximum is {max_val}"
                )

        result[key] = value

    return result


def section_defaults(section: str) -> Any:
    """Build a section dataclass populated with schema defaults.

    Args:
        section: Section name from CONFIG_SCHEMA.

    Returns:
        The section dataclass instance.
    """
    values = {key: default for key, (_, default, _, _, _) in CONFIG_SCHEMA[section].items()}
    return _SECTION_TYPES[section](**values)


def _load_config(config_path: Optional[Path] = None) -> "Config":
    """Load configuration sections from an INI file (internal use only).

    Args:
        config_path: Path to config file. If None, uses defaults from schema.

    Returns:
        Config with all sections populated and default provider settings.

    Raises:
        ConfigError: If validation fails
    """
    parser = ConfigParser()

    if config_path and config_path.exists():
        parser.read(config_path)

    sections = {
        name: _SECTION_TYPES[name](**_load_section(parser, name, schema))
        for name, schema in CONFIG_SCHEMA.items()
    }
    return Config(**sections)


@dataclass(frozen=True)
class Config:
    """Complete application configuration."""

    data_dir: Path = None  # type: ignore[assignment]  # Set in __post_init__ if None
    active_provider: str = "ollama"
    active_model: str = "llama3.1"
    embedding_model: str = "huggingface/BAAI/bge-small-en-v1.5"
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    hf_token: Optional[str] = None
    ollama_endpoint: str = "http://localhost:11434"

    # Section configs, defaults set in __post_init__
    retrieval: RetrievalConfig = None  # type: ignore[assignment]
    embedding: EmbeddingConfig = None  # type: ignore[assignment]
    history: HistoryConfig = None  # type: ignore[assignment]
    context: ContextConfig = None  # type: ignore[assignment]
    ticket: TicketConfig = None  # type: ignore[assignment]
    llm: LLMConfig = None  # type: ignore[assignment]

    def __post_init__(self):
        """Initialize data dir and section configs with defaults if not provided."""
        # Since frozen=True, we need to use object.__setattr__
        if self.data_dir is None:
            object.__setattr__(self, "data_dir", Path.home() / ".faqdesk")
        for name in CONFIG_SCHEMA:
            if getattr(self, name) is None:
                object.__setattr__(self, name, section_defaults(name))

    @property
    def db_path(self) -> Path:
        """Path to the SQLite database holding conversations and tickets."""
        return self.data_dir / "faqdesk.db"

    @property
    def chroma_path(self) -> Path:
        """Path to the ChromaDB directory holding embedded FAQ entries."""
        return self.data_dir / "chroma"

    @property
    def llm_log_path(self) -> Path:
        """Path to the JSONL log of LLM requests."""
        return self.data_dir / "logs" / "llm-queries.jsonl"

    @property
    def llm_api_key(self) -> Optional[str]:
        """API key for the active LLM provider."""
        provider_keys = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
            "groq": self.groq_api_key,
        }
        return provider_keys.get(self.active_provider)

    @property
    def llm_endpoint(self) -> Optional[str]:
        """Endpoint for LLM provider (mainly for Ollama)."""
        if self.active_provider == "ollama":
            return self.ollama_endpoint
        return None

    @property
    def embedding_api_key(self) -> Optional[str]:
        """API key for the embedding provider, chosen by model prefix."""
        if self.embedding_model.startswith("huggingface/"):
            return self.hf_token
        if self.embedding_model.startswith(("openai/", "text-embedding-")):
            return self.openai_api_key
        return None


PROVIDER_DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-haiku-20241022",
    "google": "gemini-1.5-flash",
    "groq": "llama-3.1-8b-instant",
    "ollama": "llama3.1",
}


def _detect_provider_from_keys() -> tuple[str, str]:
    """Auto-detect provider from available API keys.

    Returns:
        Tuple of (provider, model) based on available keys.
        Falls back to ollama if no keys are found.
    """
    for provider, env_var in (
        ("groq", "GROQ_API_KEY"),
        ("openai", "OPENAI_API_KEY"),
        ("anthropic", "ANTHROPIC_API_KEY"),
        ("google", "GOOGLE_API_KEY"),
    ):
        if os.getenv(env_var):
            return (provider, PROVIDER_DEFAULT_MODELS[provider])
    return ("ollama", PROVIDER_DEFAULT_MODELS["ollama"])


@lru_cache(maxsize=1)
def load_settings() -> Config:
    """Load settings from environment variables and config file.

    Settings are cached for the lifetime of the application.
    Use load_settings.cache_clear() to reload settings.

    Returns:
        Config object populated from environment variables and config file.

    Raises:
        ConfigError: If the config file contains invalid values.
    """
    data_dir_str = os.getenv("FAQDESK_DATA_DIR")
    data_dir = Path(data_dir_str) if data_dir_str else Path.home() / ".faqdesk"

    config_env = os.getenv("FAQDESK_CONFIG")
    config_file = Path(config_env) if config_env else data_dir / "config.ini"
    try:
        config_exists = config_file.exists()
    except PermissionError:
        config_exists = False
    base_config = _load_config(config_file if config_exists else None)

    active_provider = os.getenv("ACTIVE_PROVIDER")
    active_model = os.getenv("ACTIVE_MODEL")

    if not active_provider:
        detected_provider, detected_model = _detect_provider_from_keys()
        active_provider = detected_provider
        if not active_model:
            active_model = detected_model
    elif not active_model:
        active_model = PROVIDER_DEFAULT_MODELS.get(active_provider, "llama3.1")

    return Config(
        data_dir=data_dir,
        active_provider=active_provider,
        active_model=active_model,
        embedding_model=os.getenv("EMBEDDING_MODEL", "huggingface/BAAI/bge-small-en-v1.5"),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
        google_api_key=os.getenv("GOOGLE_API_KEY"),
        groq_api_key=os.getenv("GROQ_API_KEY"),
        hf_token=os.getenv("HF_TOKEN"),
        ollama_endpoint=os.getenv("OLLAMA_ENDPOINT", "http://localhost:11434"),
        retrieval=base_config.retrieval,
        embedding=base_config.embedding,
        history=base_config.history,
        context=base_config.context,
        ticket=base_config.ticket,
        llm=base_config.llm,
    )
