from __future__ import annotations

import dataclasses
from typing import Any

from j_perm import ActionHandler, ExecutionContext

from perm_extract.extractor import Extractor
from perm_extract.providers import config_from_env
from perm_extract.retry import RetryConfig


class ExtractHandler(ActionHandler):
    """Runs an extraction as a workflow step.

    Step keys: ``shape``, ``context`` and either ``config`` (an ``LLMConfig``)
    or ``model`` (``"<provider>/<model>"``, API key from the environment).
    Optional: ``instructions``, ``max_retries``, ``on_chunk``, ``on_event``,
    ``path``.
    """

    as_list = False

    def execute(self, step: Any, ctx: ExecutionContext) -> Any:
        context = ctx.engine.process_value(step["context"], ctx)
        config = step.get("config")
        if config is None:
            config = config_from_env(ctx.engine.process_value(step["model"], ctx))

        retry = ctx.metadata.get("_retry_config")
        if "max_retries" in step:
            retry = dataclasses.replace(retry or RetryConfig(), max_retries=step["max_retries"])

        extractor = Extractor(
            config,
            transport=ctx.metadata.get("_transport"),
            retry=retry,
            tracer=ctx.metadata.get("_tracer"),
        )
        extract = extractor.get_list if self.as_list else extractor.get
        result = extract(
            step["shape"],
            str(context),
            instructions=step.get("instructions"),
            on_chunk=step.get("on_chunk"),
            on_event=step.get("on_event"),
        )

        path = step.get("path")
        if path:
            resolved_path = ctx.engine.process_value(path, ctx)
            ctx.engine.processor.set(resolved_path, ctx, result)
        else:
            ctx.dest = result

        return ctx.dest


class ExtractListHandler(ExtractHandler):
    """Like :class:`ExtractHandler`, collecting every matching item."""

    as_list = True
