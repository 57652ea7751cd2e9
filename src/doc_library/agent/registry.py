"""Agent-facing registry for the document library operations."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from typing import Any

import structlog
from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ConfigDict, Field

from doc_library.errors import DocumentLibraryError
from doc_library.obs.tracing import Timer
from doc_library.types import ToolTrace

logger = structlog.get_logger(__name__)

OUTPUT_PREVIEW_CHARS = 320


class ToolSpec(BaseModel):
    """A library operation an agent may call, with its validated arguments.

    Names are camelCase (``smartSearch``, ``getById``) so agents see the same
    tool names on every transport. ``tags`` group tools by access: ``read``,
    ``search`` or ``write``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(pattern=r"^[a-z][A-Za-z0-9]*$")
    description: str
    args_schema: type[BaseModel]
    handler: Callable[[BaseModel], str]
    tags: list[str] = Field(default_factory=list)

    def invoke(self, payload: dict[str, Any]) -> str:
        data = self.args_schema.model_validate(payload)
        return self.handler(data)


class ToolRegistry:
    """Library tools by name, exportable as LangChain structured tools.

    Argument validation errors propagate to the caller. A `DocumentLibraryError`
    raised by the library becomes a JSON tool result (``error`` and
    ``message``) so the agent can relay it instead of aborting its turn.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._observer: Callable[[ToolTrace], None] | None = None

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def set_observer(self, observer: Callable[[ToolTrace], None] | None) -> None:
        """Set an optional callback invoked after each tool call."""
        self._observer = observer

    def names(self, tags: Iterable[str] | None = None) -> list[str]:
        return [spec.name for spec in self._select(tags)]

    def get(self, name: str) -> ToolSpec:
        spec = self._tools.get(name)
        if spec is None:
            raise KeyError(f"Unknown tool: {name}")
        return spec

    def execute(self, name: str, payload: dict[str, Any]) -> str:
        return self._execute_spec(self.get(name), payload)

    def as_langchain_tools(self, tags: Iterable[str] | None = None) -> list[StructuredTool]:
        """Export tools, optionally only those carrying one of ``tags``."""

        return [
            StructuredTool.from_function(
                name=spec.name,
                description=spec.description,
                args_schema=spec.args_schema,
                func=self._build_function(spec),
            )
            for spec in self._select(tags)
        ]

    def _select(self, tags: Iterable[str] | None) -> list[ToolSpec]:
        if tags is None:
            return list(self._tools.values())
        wanted = set(tags)
        return [spec for spec in self._tools.values() if wanted.intersection(spec.tags)]

    def _build_function(self, spec: ToolSpec) -> Callable[..., str]:
        def _callable(**kwargs: Any) -> str:
            return self._execute_spec(spec, kwargs)

        return _callable

    def _execute_spec(self, spec: ToolSpec, payload: dict[str, Any]) -> str:
        error: str | None = None
        with Timer() as timer:
            try:
                output = spec.invoke(payload)
            except DocumentLibraryError as exc:
                error = type(exc).__name__
                output = json.dumps({"error": error, "message": str(exc)}, ensure_ascii=False)

        if error is None:
            logger.debug("tool_executed", tool=spec.name, latency_ms=round(timer.elapsed_ms, 3))
        else:
            logger.warning("tool_failed", tool=spec.name, error=error, latency_ms=round(timer.elapsed_ms, 3))

        if self._observer is not None:
            self._observer(
                ToolTrace(
                    name=spec.name,
                    input_payload=payload,
                    output_preview=output[:OUTPUT_PREVIEW_CHARS],
                    latency_ms=timer.elapsed_ms,
                    error=error,
                )
            )
        return output
