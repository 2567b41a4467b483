"""Graph tools exposed to the host agent.

Each tool validates its parameters, checks for an index, forwards the call
to the backend over JSON-RPC, and always answers with text: either the
backend's result or a short message. Errors never reach the host.

Not exposed: raw graph queries (cypher) and automated renames.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gitnexus_bridge.index import NO_INDEX, IndexLocator, safe_resolve_path
from gitnexus_bridge.logging import get_logger
from gitnexus_bridge.rpc.client import GraphRpcClient

log = get_logger("tools")

NO_RESULTS = "No results."
NO_REPOS = "No indexed repositories found."
NO_AFFECTED_FLOWS = "No affected flows detected."
INVALID_PATH = "Invalid file path."
NAME_OR_UID = "Provide either name or uid."

MAX_DIFF_CHARS = 50_000


class ToolParams(BaseModel):
    """Base model for tool parameters."""

    model_config = ConfigDict(populate_by_name=True)

    def arguments(self) -> dict[str, Any]:
        """Arguments for the backend; unset optionals are omitted so it applies its defaults."""
        return self.model_dump(exclude_none=True)


class ListReposParams(ToolParams):
    pass


class QueryParams(ToolParams):
    query: str = Field(min_length=1, max_length=200, pattern=r"^[^-]")
    task_context: str | None = Field(default=None, min_length=1, max_length=500)
    goal: str | None = Field(default=None, min_length=1, max_length=500)
    limit: int | None = Field(default=None, ge=1, le=100)
    include_content: bool | None = None


class ContextParams(ToolParams):
    name: str | None = Field(default=None, min_length=1, max_length=200, pattern=r"^[^-]")
    uid: str | None = Field(default=None, min_length=1, max_length=200)
    file: str | None = Field(default=None, min_length=1, max_length=500)
    include_content: bool | None = None


class ImpactParams(ToolParams):
    target: str = Field(min_length=1, max_length=200, pattern=r"^[^-]")
    direction: Literal["upstream", "downstream"] | None = None
    depth: int | None = Field(default=None, ge=1, le=10)
    include_tests: bool | None = None


class DetectChangesParams(ToolParams):
    diff: str = Field(min_length=1, max_length=MAX_DIFF_CHARS)


@dataclass(frozen=True)
class ToolSpec:
    """Registration data for one host tool."""

    name: str
    label: str
    description: str
    params: type[ToolParams]

    def input_schema(self) -> dict[str, Any]:
        return self.params.model_json_schema()


TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="gitnexus_list_repos",
        label="GitNexus List Repos",
        description="List all repositories indexed by GitNexus. Use first when multiple repos may be indexed.",
        params=ListReposParams,
    ),
    ToolSpec(
        name="gitnexus_query",
        label="GitNexus Query",
        description="Search the knowledge graph for execution flows related to a concept or error.",
        params=QueryParams,
    ),
    ToolSpec(
        name="gitnexus_context",
        label="GitNexus Context",
        description="360-degree view of a code symbol: callers, callees, processes it participates in.",
        params=ContextParams,
    ),
    ToolSpec(
        name="gitnexus_impact",
        label="GitNexus Impact",
        description="Blast radius analysis: what breaks at each depth if you change a symbol.",
        params=ImpactParams,
    ),
    ToolSpec(
        name="gitnexus_detect_changes",
        label="GitNexus Detect Changes",
        description="Map a git diff to affected execution flows. Pass the output of `git diff HEAD` to find what breaks.",
        params=DetectChangesParams,
    ),
)


def _as_payload(arguments: Any) -> Any:
    # Non-mappings go to pydantic as-is and fail validation there
    if arguments is None:
        return {}
    return dict(arguments) if isinstance(arguments, Mapping) else arguments


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "parameters"
    return f"Invalid {field}: {first.get('msg', 'invalid value')}"


class GraphTools:
    """Host-facing graph tools backed by one GraphRpcClient."""

    def __init__(self, rpc: GraphRpcClient, index: IndexLocator) -> None:
        self.rpc = rpc
        self.index = index
        self._handlers: dict[str, Callable[[Any, str], Awaitable[str]]] = {
            "gitnexus_list_repos": self.list_repos,
            "gitnexus_query": self.query,
            "gitnexus_context": self.context,
            "gitnexus_impact": self.impact,
            "gitnexus_detect_changes": self.detect_changes,
        }
        self._specs = {spec.name: spec for spec in TOOL_SPECS}

    @property
    def specs(self) -> tuple[ToolSpec, ...]:
        return TOOL_SPECS

    async def call(self, name: str, arguments: Any, cwd: str) -> str:
        """Validate arguments and run the named tool."""
        spec = self._specs.get(name)
        if spec is None:
            return f"Unknown tool: {name}"
        try:
            params = spec.params.model_validate(_as_payload(arguments))
        except ValidationError as e:
            log.debug("Rejected %s arguments: %s", name, e)
            return _describe_validation_error(e)
        return await self._handlers[name](params, cwd)

    async def list_repos(self, params: ListReposParams, cwd: str) -> str:
        result = await self.rpc.call_tool("list_repos", params.arguments(), cwd)
        return result.text or NO_REPOS

    async def query(self, params: QueryParams, cwd: str) -> str:
        if not self.index.has_index(cwd):
            return NO_INDEX
        result = await self.rpc.call_tool("query", params.arguments(), cwd)
        return result.text or NO_RESULTS

    async def context(self, params: ContextParams, cwd: str) -> str:
        if not self.index.has_index(cwd):
            return NO_INDEX
        if not params.name and not params.uid:
            return NAME_OR_UID
        args = params.arguments()
        if params.file:
            resolved = safe_resolve_path(params.file, cwd)
            if resolved is None:
                return INVALID_PATH
            args["file"] = resolved
        result = await self.rpc.call_tool("context", args, cwd)
        return result.text or NO_RESULTS

    async def impact(self, params: ImpactParams, cwd: str) -> str:
        if not self.index.has_index(cwd):
            return NO_INDEX
        result = await self.rpc.call_tool("impact", params.arguments(), cwd)
        return result.text or NO_RESULTS

    async def detect_changes(self, params: DetectChangesParams, cwd: str) -> str:
        if not self.index.has_index(cwd):
            return NO_INDEX
        result = await self.rpc.call_tool("detect_changes", params.arguments(), cwd)
        return result.text or NO_AFFECTED_FLOWS
