from __future__ import annotations

from typing import TYPE_CHECKING, Any

from j_perm import (
    ActionNode,
    Engine,
    ExecutionContext,
    Middleware,
    OpMatcher,
    build_default_engine,
)

from .handlers.extract import ExtractHandler, ExtractListHandler

if TYPE_CHECKING:
    from .observability import Tracer
    from .retry import RetryConfig
    from .transport import Transport


class _ExtractMetadataMiddleware(Middleware):
    name = "extract_metadata"
    priority = 100

    def __init__(
        self,
        transport: Transport | None = None,
        retry: RetryConfig | None = None,
        tracer: Tracer | None = None,
    ) -> None:
        self._transport = transport
        self._retry = retry
        self._tracer = tracer

    def process(self, step: Any, ctx: ExecutionContext) -> Any:
        if self._transport is not None:
            ctx.metadata.setdefault("_transport", self._transport)
        if self._retry is not None:
            ctx.metadata.setdefault("_retry_config", self._retry)
        if self._tracer is not None:
            ctx.metadata.setdefault("_tracer", self._tracer)
        return step


def build_extract_engine(
    *,
    transport: Transport | None = None,
    retry: RetryConfig | None = None,
    tracer: Tracer | None = None,
    **kwargs: Any,
) -> Engine:
    """Build a j_perm engine with ``extract`` and ``extract_list`` ops."""
    engine = build_default_engine(**kwargs)

    engine.main_pipeline.register_middleware(
        _ExtractMetadataMiddleware(transport=transport, retry=retry, tracer=tracer)
    )

    handlers = [
        ("extract", ExtractHandler()),
        ("extract_list", ExtractListHandler()),
    ]

    for op_name, handler in handlers:
        engine.main_pipeline.registry.register(
            ActionNode(
                name=op_name,
                priority=10,
                matcher=OpMatcher(op_name),
                handler=handler,
            )
        )

    return engine
