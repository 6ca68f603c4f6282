"""Tool registry: named, schema-described functions the model may call.

A tool pairs a pydantic argument model with an execution function
``(parsed_args, context_variables) -> ToolInvocationResult``.  The argument
model is what the model sees as the tool's JSON schema, and it is also what
validates the decoded arguments before the function runs: a missing or empty
required field never reaches the domain code, it comes back as an error
result the model can read and correct.
"""

from __future__ import annotations

import dataclasses
import inspect
import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import BaseModel, ConfigDict, ValidationError

if TYPE_CHECKING:
    from booking_assistant.persona import Persona


class ToolArguments(BaseModel):
    """Base class for typed tool arguments."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class NoArguments(ToolArguments):
    """The tool takes no arguments."""


@dataclass(frozen=True)
class ToolInvocationResult:
    """Outcome of a single tool call.

    ``handoff`` names the persona that should take over the rest of the turn;
    ``context_updates`` are merged into the context variables seen by later
    tools.  Neither outlives the turn.
    """

    success: bool
    data: str = ""
    error_message: str | None = None
    tool_name: str = ""
    arguments: Mapping[str, Any] = dataclasses.field(default_factory=dict)
    handoff: Persona | None = None
    context_updates: Mapping[str, Any] | None = None

    @classmethod
    def ok(cls, data: str, **kwargs: Any) -> ToolInvocationResult:
        return cls(success=True, data=data, **kwargs)

    @classmethod
    def error(cls, message: str, **kwargs: Any) -> ToolInvocationResult:
        return cls(success=False, error_message=message, **kwargs)

    @property
    def content(self) -> str:
        """Text fed back to the model as the tool message content."""
        if self.success:
            return self.data
        return f"Error: {self.error_message}"


ToolFunction = Callable[[Any, Mapping[str, Any]], ToolInvocationResult]


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic error into one line the model can act on."""
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "input"
        problems.append(f"invalid {field} argument: {err['msg'].lower()}")
    return "; ".join(problems)


@dataclass(frozen=True)
class BookingTool:
    """A callable exposed to the model by name."""

    name: str
    description: str
    args_schema: type[ToolArguments]
    func: ToolFunction

    def schema(self) -> dict[str, Any]:
        """Return the tool definition in OpenAI function format.

        ``bind_tools`` on LangChain chat models accepts this shape for every
        provider, Anthropic included.
        """
        definition = convert_to_openai_tool(self.args_schema)
        definition["function"].update(name=self.name, description=self.description)
        return definition

    def run(self, arguments: Any, context_variables: Mapping[str, Any]) -> ToolInvocationResult:
        """Validate decoded JSON *arguments* and execute the tool."""
        if not isinstance(arguments, Mapping):
            result = ToolInvocationResult.error("invalid input: arguments must be a JSON object")
            return dataclasses.replace(result, tool_name=self.name)

        try:
            parsed = self.args_schema.model_validate(dict(arguments))
        except ValidationError as exc:
            result = ToolInvocationResult.error(describe_validation_error(exc))
        else:
            result = self.func(parsed, context_variables)

        return dataclasses.replace(result, tool_name=self.name, arguments=dict(arguments))


def booking_tool(
    name: str, args_schema: type[ToolArguments] = NoArguments
) -> Callable[[ToolFunction], BookingTool]:
    """Decorator turning a function into a :class:`BookingTool`.

    The function's docstring becomes the description shown to the model.
    """

    def decorator(func: ToolFunction) -> BookingTool:
        return BookingTool(
            name=name,
            description=inspect.getdoc(func) or name,
            args_schema=args_schema,
            func=func,
        )

    return decorator


class ToolRegistry:
    """Tools indexed by name."""

    def __init__(self, tools: Iterable[BookingTool] = ()):
        self._tools: dict[str, BookingTool] = {}
        for t in tools:
            self.register(t)

    def register(self, tool: BookingTool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Duplicate tool name: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> BookingTool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        return [t.schema() for t in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[BookingTool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)


def make_handoff_tool(target: Persona, name: str | None = None, description: str | None = None) -> BookingTool:
    """Build a tool that hands the rest of the turn over to *target*."""
    tool_name = name or "transfer_to_" + re.sub(r"[^a-z0-9]+", "_", target.name.lower()).strip("_")

    def _handoff(args: NoArguments, context_variables: Mapping[str, Any]) -> ToolInvocationResult:
        return ToolInvocationResult.ok(f"Transferred to {target.name}.", handoff=target)

    return BookingTool(
        name=tool_name,
        description=description or f"Hand the conversation over to {target.name}.",
        args_schema=NoArguments,
        func=_handoff,
    )
