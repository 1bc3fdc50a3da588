"""Infrastructure layer: configuration, models, corpus access, events, tracing."""

from agent_tool_bench.infrastructure.config import (
    BenchConfig,
    CorpusConfig,
    EmbeddingConfig,
    FilesystemConfig,
    LoopConfig,
    ScorerConfig,
    ShellConfig,
    load_config_file,
    load_config_from_json,
)
from agent_tool_bench.infrastructure.corpus import EmbeddingStore, open_readonly_database
from agent_tool_bench.infrastructure.event_bus import EventBus, StreamCallbacks
from agent_tool_bench.infrastructure.models import (
    DEFAULT_MODEL,
    MODEL_CONFIG,
    create_chat_model,
    get_model_from_env,
)

__all__ = [
    "BenchConfig",
    "CorpusConfig",
    "DEFAULT_MODEL",
    "EmbeddingConfig",
    "EmbeddingStore",
    "EventBus",
    "FilesystemConfig",
    "LoopConfig",
    "MODEL_CONFIG",
    "ScorerConfig",
    "ShellConfig",
    "StreamCallbacks",
    "create_chat_model",
    "get_model_from_env",
    "load_config_file",
    "load_config_from_json",
    "open_readonly_database",
]
