"""OpenAI Chat Completions adapter: runs an assembled agent's tool loop."""

import json
import logging
import time
from typing import Any, AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from agentdesk.infra.config import config
from agentdesk.infra.error_handler import ErrorCategory, ProviderOperationFailed, ValidationError
from agentdesk.infra.metrics import llm_calls_total, llm_call_duration, llm_tokens_total
from agentdesk.models.agent import RuntimeAgent
from agentdesk.models.tool import ToolDefinition

logger = logging.getLogger(__name__)

CHAT_ROLES = {"user", "assistant"}


def build_openai_tools(tools: List[ToolDefinition]) -> List[Dict[str, Any]]:
    """
    Convert ToolDefinition objects to OpenAI function tool schema.

    Args:
        tools: Tool definitions keyed by alias in ``name``

    Returns:
        List of OpenAI tool dicts
    """
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters_schema or {},
            },
        }
        for tool in tools
    ]


def build_llm_messages(agent: RuntimeAgent, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """System prompt followed by the caller's user/assistant history."""
    if not messages:
        raise ValidationError("Messages are required", field="messages")

    llm_messages = [{"role": "system", "content": agent.instructions}]
    for message in messages:
        role = message.get("role")
        if role not in CHAT_ROLES:
            raise ValidationError(f"Unsupported message role: {role}", field="messages")
        llm_messages.append({"role": role, "content": message.get("content") or ""})
    return llm_messages


class AgentRunner:
    """Invokes a RuntimeAgent: model call, tool dispatch, repeat until an answer."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, max_steps: Optional[int] = None):
        self._client = client
        self.max_steps = max_steps or config.MAX_TOOL_STEPS

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            if not config.OPENAI_API_KEY:
                raise ProviderOperationFailed(
                    provider="openai",
                    operation="chat",
                    provider_message="OPENAI_API_KEY not configured",
                    category=ErrorCategory.AUTH_ERROR,
                )
            self._client = AsyncOpenAI(api_key=config.OPENAI_API_KEY)
        return self._client

    async def _create(self, agent: RuntimeAgent, llm_messages, tools, final: bool = False, stream: bool = False):
        kwargs: Dict[str, Any] = {"model": agent.model, "messages": llm_messages}
        if tools:
            kwargs["tools"] = tools
            if final:
                kwargs["tool_choice"] = "none"
        if stream:
            kwargs["stream"] = True

        start_time = time.time()
        try:
            response = await self.client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            llm_calls_total.labels(provider="openai", model=agent.model, status="failure").inc()
            raise ProviderOperationFailed(provider="openai", operation="chat", provider_message=str(e)) from e

        llm_calls_total.labels(provider="openai", model=agent.model, status="success").inc()
        llm_call_duration.labels(provider="openai", model=agent.model).observe(time.time() - start_time)
        usage = getattr(response, "usage", None)
        if usage is not None:
            llm_tokens_total.labels(provider="openai", model=agent.model, type="prompt").inc(usage.prompt_tokens or 0)
            llm_tokens_total.labels(provider="openai", model=agent.model, type="completion").inc(usage.completion_tokens or 0)
        return response

    async def _dispatch_tool_calls(
        self,
        agent: RuntimeAgent,
        llm_messages: List[Dict[str, Any]],
        tool_calls: List[Dict[str, Any]],
        content: Optional[str],
    ) -> List[Dict[str, Any]]:
        """Run requested tools and append the exchange to ``llm_messages``."""
        llm_messages.append({
            "role": "assistant",
            "content": content or None,
            "tool_calls": [
                {
                    "id": tc["id"],
                    "type": "function",
                    "function": {"name": tc["name"], "arguments": tc["arguments"]},
                }
                for tc in tool_calls
            ],
        })

        executed = []
        for tc in tool_calls:
            try:
                args = json.loads(tc["arguments"]) if tc["arguments"] else {}
            except json.JSONDecodeError:
                args = None

            tool = agent.tools.get(tc["name"])
            if tool is None:
                result = {"success": False, "message": f"Unknown tool: {tc['name']}"}
            elif not isinstance(args, dict):
                result = {"success": False, "message": f"Arguments for {tc['name']} must be a JSON object"}
            else:
                result = await tool.execute(args)

            logger.info(f"Agent {agent.agent_id} called {tc['name']}")
            llm_messages.append({
                "role": "tool",
                "tool_call_id": tc["id"],
                "content": json.dumps(result, default=str),
            })
            executed.append({"name": tc["name"], "arguments": args, "result": result})
        return executed

    async def run(self, agent: RuntimeAgent, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Answer the conversation, calling tools as the model requests.

        Returns:
            Dict with the final ``content`` and the ``toolCalls`` made
        """
        llm_messages = build_llm_messages(agent, messages)
        tools = build_openai_tools([tool.definition for tool in agent.tools.values()])
        executed: List[Dict[str, Any]] = []

        for step in range(self.max_steps):
            response = await self._create(agent, llm_messages, tools)
            message = response.choices[0].message
            if not message.tool_calls:
                return {"content": message.content or "", "toolCalls": executed}

            executed.extend(await self._dispatch_tool_calls(
                agent,
                llm_messages,
                [
                    {"id": tc.id, "name": tc.function.name, "arguments": tc.function.arguments}
                    for tc in message.tool_calls
                ],
                message.content,
            ))

        logger.warning(f"Agent {agent.agent_id} hit the {self.max_steps} tool step limit")
        response = await self._create(agent, llm_messages, tools, final=True)
        return {"content": response.choices[0].message.content or "", "toolCalls": executed}

    async def stream(self, agent: RuntimeAgent, messages: List[Dict[str, Any]]) -> AsyncIterator[str]:
        """Like ``run`` but yields answer text as it is generated."""
        llm_messages = build_llm_messages(agent, messages)
        tools = build_openai_tools([tool.definition for tool in agent.tools.values()])

        for step in range(self.max_steps + 1):
            final = step == self.max_steps
            response = await self._create(agent, llm_messages, tools, final=final, stream=True)

            content_parts: List[str] = []
            pending: Dict[int, Dict[str, Any]] = {}
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta.content:
                    content_parts.append(delta.content)
                    yield delta.content
                for tc in delta.tool_calls or []:
                    entry = pending.setdefault(tc.index, {"id": None, "name": "", "arguments": ""})
                    if tc.id:
                        entry["id"] = tc.id
                    if tc.function and tc.function.name:
                        entry["name"] += tc.function.name
                    if tc.function and tc.function.arguments:
                        entry["arguments"] += tc.function.arguments

            if not pending:
                return
            await self._dispatch_tool_calls(
                agent,
                llm_messages,
                [pending[index] for index in sorted(pending)],
                "".join(content_parts),
            )


# Global instance
agent_runner = AgentRunner()
