"""Common contract for tools an agent can call."""

import logging
import re
import time
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ValidationError as PydanticValidationError

from agentdesk.infra.error_handler import ServiceError, ValidationError, error_payload
from agentdesk.infra.metrics import tool_calls_total, tool_call_duration
from agentdesk.models.tool import ToolDefinition

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_email(value: Optional[str]) -> Optional[str]:
    """Pydantic field validator body: syntactic email check."""
    if value is None:
        return value
    value = value.strip()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("must be a valid email address")
    return value


def format_validation_error(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part != "__root__")
        message = item.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


class AgentTool:
    """
    A capability bound into a runtime agent under an alias.

    Subclasses set ``provider`` and ``input_model`` and implement ``invoke``,
    which validates input first and raises the typed errors from
    ``agentdesk.infra.error_handler``. The tool loop calls ``execute``, which
    never raises for service errors and instead returns the structured
    failure content for the model.
    """

    provider: str = ""
    input_model: Type[BaseModel] = BaseModel
    default_operation: str = "execute"

    def __init__(self, alias: str, tool_id: str, description: str, connection_id: Optional[str] = None):
        self.alias = alias
        self.tool_id = tool_id
        self.description = description
        self.connection_id = connection_id

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            id=self.tool_id,
            name=self.alias,
            description=self.description,
            parameters_schema=self.parameters_schema(),
            provider=self.provider,
            connection_id=self.connection_id,
        )

    def parameters_schema(self) -> Dict[str, Any]:
        schema = self.input_model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        return schema

    def parse_input(self, args: Dict[str, Any]) -> BaseModel:
        """Validate raw model-supplied arguments.

        Raises:
            ValidationError: With a message the model can act on
        """
        try:
            return self.input_model.model_validate(args or {})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid input for {self.alias}: {format_validation_error(e)}") from e

    async def invoke(self, args: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def execute(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Run the tool for the model; failures come back as content."""
        operation = (args or {}).get("action") or self.default_operation
        start_time = time.time()
        status = "success"
        try:
            return await self.invoke(args)
        except ServiceError as e:
            status = "error"
            logger.warning(f"Tool {self.alias} ({self.provider}) {operation} failed: {e.message}")
            return error_payload(e, str(operation))
        finally:
            tool_calls_total.labels(tool_name=self.alias, provider=self.provider, status=status).inc()
            tool_call_duration.labels(tool_name=self.alias, provider=self.provider).observe(
                time.time() - start_time
            )
