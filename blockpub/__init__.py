from __future__ import annotations

from .blocks import Block, BlockType, parse_blocks
from .charts import ChartSelections, ChartType, prepare
from .config import load_config, resolve_media_token
from .config_schema import AppConfig
from .errors import BadInputError, ConfigError, ReferenceFailureKind, ReferenceResolutionError
from .excerpt import GeneratedExcerpt, generate_excerpt
from .fields import FieldOption, FieldType, analyze
from .ingest import ingest
from .media import MediaResolver, ResolvedReference
from .resolver import ResolvedBlock, resolve_blocks

__all__ = [
    "AppConfig",
    "BadInputError",
    "Block",
    "BlockType",
    "ChartSelections",
    "ChartType",
    "ConfigError",
    "FieldOption",
    "FieldType",
    "GeneratedExcerpt",
    "MediaResolver",
    "ReferenceFailureKind",
    "ReferenceResolutionError",
    "ResolvedBlock",
    "ResolvedReference",
    "analyze",
    "generate_excerpt",
    "ingest",
    "load_config",
    "parse_blocks",
    "prepare",
    "resolve_blocks",
    "resolve_media_token",
]
