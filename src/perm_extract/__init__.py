from .events import (
    AttemptFailedEvent,
    ChunkEvent,
    DeltaEvent,
    EventHandler,
    ExtractionCompleteEvent,
    StreamEvent,
)
from .exceptions import (
    ConfigurationError,
    ExtractionFailedError,
    ParseError,
    PermExtractError,
    SchemaError,
    SchemaValidationError,
    TransportError,
)
from .extractor import Extractor
from .factory import build_extract_engine
from .handlers.extract import ExtractHandler, ExtractListHandler
from .json_complete import complete
from .json_parse import locate_json, parse
from .mapper import ABSENT, map_partial
from .observability import (
    AttemptStats,
    ConsoleTracerHook,
    Span,
    SpanEvent,
    Tracer,
    TracerHook,
)
from .providers import (
    AvalAi,
    LLMConfig,
    OpenAi,
    OutputStrategy,
    ProviderModel,
    config_from_env,
    get_provider_model,
)
from .retry import AttemptState, RepairPolicy, RetryConfig, awith_repair, with_repair
from .schema import (
    Field,
    ListShape,
    ObjectShape,
    ScalarShape,
    Shape,
    boolean,
    enum,
    field,
    from_json_schema,
    from_model,
    integer,
    list_of,
    number,
    optional,
    shape,
    string,
    to_json_schema,
)
from .streaming import ExtractionAttempt, on_delta, parse_partial
from .structured import StructuredOutput
from .transport import AsyncTransport, LiteLLMTransport, Transport
from .validator import ValidationError, check, validate

__all__ = [
    # High-level API
    "Extractor",
    "StructuredOutput",
    # Shapes
    "Shape",
    "ScalarShape",
    "ObjectShape",
    "ListShape",
    "Field",
    "string",
    "number",
    "integer",
    "boolean",
    "enum",
    "list_of",
    "field",
    "optional",
    "shape",
    "from_json_schema",
    "from_model",
    "to_json_schema",
    # Pipeline
    "complete",
    "parse",
    "locate_json",
    "map_partial",
    "ABSENT",
    "ExtractionAttempt",
    "on_delta",
    "parse_partial",
    "validate",
    "check",
    "ValidationError",
    # Retry
    "RetryConfig",
    "RepairPolicy",
    "AttemptState",
    "with_repair",
    "awith_repair",
    # Providers and transport
    "LLMConfig",
    "OutputStrategy",
    "ProviderModel",
    "OpenAi",
    "AvalAi",
    "get_provider_model",
    "config_from_env",
    "Transport",
    "AsyncTransport",
    "LiteLLMTransport",
    # Engine
    "build_extract_engine",
    "ExtractHandler",
    "ExtractListHandler",
    # Events
    "StreamEvent",
    "DeltaEvent",
    "ChunkEvent",
    "AttemptFailedEvent",
    "ExtractionCompleteEvent",
    "EventHandler",
    # Observability
    "Span",
    "SpanEvent",
    "Tracer",
    "TracerHook",
    "ConsoleTracerHook",
    "AttemptStats",
    # Exceptions
    "PermExtractError",
    "ConfigurationError",
    "SchemaError",
    "ParseError",
    "SchemaValidationError",
    "TransportError",
    "ExtractionFailedError",
]
