"""
Named tools an agent may enable, exposed to chat models as LangChain tools
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class ToolDescriptor(BaseModel):
    """A typed tool: the args schema validates what the model sends to `handler`"""
    name: str
    description: str
    args_schema: Type[BaseModel]
    handler: Callable[..., Awaitable[Any]]

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def to_langchain(self) -> StructuredTool:
        handler = self.handler
        name = self.name

        async def tool_wrapper(**kwargs):
            try:
                return await handler(**kwargs)
            except Exception as e:
                logger.error(f"Error executing tool {name}: {str(e)}")
                return f"Error executing tool {name}: {str(e)}"

        return StructuredTool.from_function(
            coroutine=tool_wrapper,
            name=self.name,
            description=self.description,
            args_schema=self.args_schema,
        )


# ───────────────────────────── built-in tools ─────────────────────────────
class CurrentDateTimeArgs(BaseModel):
    timezone: str = Field(default="UTC", description="IANA time zone name, for example Europe/Paris")


async def current_datetime(timezone: str = "UTC") -> str:
    try:
        zone = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        return f"Unknown time zone '{timezone}'"
    return datetime.now(zone).isoformat(timespec="seconds")


CURRENT_DATETIME = ToolDescriptor(
    name="current_datetime",
    description="Returns the current date and time in ISO 8601 format for a time zone.",
    args_schema=CurrentDateTimeArgs,
    handler=current_datetime,
)


class ToolRegistry:
    def __init__(self, descriptors: Optional[Iterable[ToolDescriptor]] = None):
        self._tools: Dict[str, ToolDescriptor] = {}
        for descriptor in descriptors or ():
            self.register(descriptor)

    @classmethod
    def default(cls) -> "ToolRegistry":
        return cls([CURRENT_DATETIME])

    def register(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            logger.warning(f"Tool '{descriptor.name}' registered twice, keeping the latest")
        self._tools[descriptor.name] = descriptor

    @property
    def names(self) -> List[str]:
        return sorted(self._tools)

    def lookup(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def resolve(self, names: Iterable[str], agent_id: Any = None) -> List[StructuredTool]:
        """LangChain tools for the enabled names; unknown names are skipped"""
        tools = []
        for name in names or ():
            descriptor = self.lookup(name)
            if descriptor is None:
                logger.warning(f"Tool '{name}' is enabled for agent '{agent_id}' but not found in registry")
                continue
            tools.append(descriptor.to_langchain())
        logger.debug(f"Resolved {len(tools)} tools for agent {agent_id}")
        return tools
