"""
Tool schema registry for Conductor.

Every operation the assistant may request is declared once, at import time, as a pydantic model
describing its arguments.  The model's docstring is the tool description shown to the AI backend
and its JSON schema is the parameter schema.  Registration happens through a decorator:

    @register_tool("set_volume")
    class SetVolumeArgs(ToolArguments):
        \"\"\"Set the playback volume level.\"\"\"

        volume: int = Field(..., ge=0, le=100)

The registry is read-only after import and safe to share between tasks.
"""

import inspect
import logging
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Type,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    ValidationError,
    model_validator,
)

logger = logging.getLogger(__name__)


class ToolArguments(BaseModel):
    """Base class for tool argument models."""

    # Strict: "50" is not a volume and "yes" is not a confirmation.
    model_config = ConfigDict(strict=True, str_strip_whitespace=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _integral_floats(cls, data: Any) -> Any:
        # Models often write 50.0 for 50; 50.5 still fails the int check.
        if not isinstance(data, dict):
            return data
        return {
            key: int(value) if isinstance(value, float) and value.is_integer() else value
            for key, value in data.items()
        }


class ToolDefinition(BaseModel):
    """A named operation with a typed, constrained parameter schema."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    arguments_model: Type[ToolArguments]

    @property
    def parameter_schema(self) -> Dict[str, Any]:
        """JSON schema of the arguments, suitable for native function calling."""
        return self.arguments_model.model_json_schema()


class SchemaError(ValueError):
    """
    A proposed tool call names an unknown tool or carries invalid arguments.

    Instances are *returned* by :func:`validate`, never raised by it.
    """

    def __init__(self, tool: str, reason: str) -> None:
        super().__init__(f"{tool}: {reason}")
        self.tool = tool
        self.reason = reason


TOOL_REGISTRY: Dict[str, ToolDefinition] = {}
"""Global registry of tool definitions, keyed by name."""


def register_tool(name: str) -> Callable[[Type[ToolArguments]], Type[ToolArguments]]:
    """
    Register an argument model as the tool *name*.

    Parameters
    ----------
    name: str
        The name of the tool.  This must be unique across the registry.
    Returns
    -------
    Callable
        A class decorator that records the model in :data:`TOOL_REGISTRY`.
    Raises
    ------
    ValueError
        If a tool with the same name is already registered.
    """
    if name in TOOL_REGISTRY:
        raise ValueError(f"Tool '{name}' is already registered.")
    logger.debug("Registering tool '%s'", name)

    def wrapper(cls: Type[ToolArguments]) -> Type[ToolArguments]:
        TOOL_REGISTRY[name] = ToolDefinition(
            name=name,
            description=inspect.cleandoc(cls.__doc__ or ""),
            arguments_model=cls,
        )
        return cls

    return wrapper


def get_tool_definitions() -> List[ToolDefinition]:
    """Return every registered tool, in registration order."""
    return list(TOOL_REGISTRY.values())


def _describe_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def validate(
    name: str,
    raw_arguments: Any,
    definitions: Mapping[str, ToolDefinition] | None = None,
) -> ToolArguments | SchemaError:
    """
    Check *raw_arguments* against the schema of tool *name*.

    Returns the validated argument model, or a :class:`SchemaError` describing why the call is
    unusable.  Never raises.
    """
    registry = TOOL_REGISTRY if definitions is None else definitions
    definition = registry.get(name)
    if definition is None:
        return SchemaError(name, "unknown tool")
    if raw_arguments is None:
        raw_arguments = {}
    if not isinstance(raw_arguments, Mapping):
        return SchemaError(name, "arguments must be an object")
    try:
        return definition.arguments_model.model_validate(dict(raw_arguments))
    except ValidationError as exc:
        return SchemaError(name, _describe_errors(exc))


# Populate the registry.
from conductor.tools import arguments  # noqa: E402,F401  pylint: disable=wrong-import-position
