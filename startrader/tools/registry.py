import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from startrader.core.exceptions.errors import (
    MissingParameterError,
    StarTraderError,
    UnknownToolError,
)
from startrader.tools.catalog import TOOL_CATALOG, ToolDescriptor
from startrader.utils.logging import get_logger

logger = get_logger()


class Fetcher(Protocol):
    async def fetch(
        self, endpoint: str, params: Optional[Mapping[str, Any]] = None, *, raw: bool = False
    ) -> Any: ...


@dataclass
class Validation:
    args: Dict[str, Any] = field(default_factory=dict)
    error: Optional[MissingParameterError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Tool:
    """One catalog entry bound to the backend that serves it."""

    def __init__(self, descriptor: ToolDescriptor, fetcher: Fetcher, base_url: str):
        self.descriptor = descriptor
        self.fetcher = fetcher
        self.endpoint = base_url.strip().rstrip("/") + descriptor.path

    @property
    def name(self) -> str:
        return self.descriptor.name

    def validate(self, args: Optional[Mapping[str, Any]]) -> Validation:
        args = dict(args or {})
        if self.descriptor.requires_parameter and not args:
            return Validation(args=args, error=MissingParameterError(self.name))
        return Validation(args=args)

    async def execute(self, args: Mapping[str, Any]) -> Any:
        params = {**args, **self.descriptor.fixed_params}
        return await self.fetcher.fetch(self.endpoint, params, raw=self.descriptor.raw)


class ToolRegistry:
    def __init__(self, tools: Iterable[Tool]):
        self._tools: Dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def descriptors(self) -> List[ToolDescriptor]:
        return [tool.descriptor for tool in self._tools.values()]

    def openai_tools(self) -> List[Dict[str, Any]]:
        return [descriptor.openai_definition() for descriptor in self.descriptors()]

    async def run_function(self, name: str, args: Optional[Mapping[str, Any]] = None) -> Any:
        """Validate and execute the named tool, returning its payload untouched."""
        logger.info(f"Function called: {name} args={json.dumps(args or {}, default=str)}")
        try:
            tool = self.get(name)
            validation = tool.validate(args)
            if not validation.ok:
                raise validation.error
            result = await tool.execute(validation.args)
        except StarTraderError as exc:
            logger.error(f"Error while executing function {name}: {exc}")
            raise

        logger.info(f"Function {name} executed successfully")
        return result


def build_registry(
    fetcher: Fetcher,
    base_url: str,
    catalog: Iterable[ToolDescriptor] = TOOL_CATALOG,
) -> ToolRegistry:
    return ToolRegistry(Tool(descriptor, fetcher, base_url) for descriptor in catalog)
