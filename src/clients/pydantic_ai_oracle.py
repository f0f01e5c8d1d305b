"""
Pydantic-AI Oracle Adapter

Implements the oracle port with Pydantic-AI agents (Gemini via Vertex AI by
default). Each line's system prompt and few-shot examples are replayed as
message history; the JSON-Schema response constraint becomes a native
structured-output type so the model itself is constrained.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from pydantic_ai import Agent, NativeOutput, StructuredDict
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.settings import ModelSettings

from src.clients.oracle import (
    AbortSignal,
    LanguageModelSession,
    OracleAdapter,
    SessionConfig,
)
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


def build_seed_history(config: SessionConfig) -> List[ModelMessage]:
    """Turn a session config into the message history every clone starts from."""
    examples = config.examples
    if not examples:
        return [ModelRequest(parts=[SystemPromptPart(content=config.system_prompt)])]

    history: List[ModelMessage] = []
    for index, example in enumerate(examples):
        parts = [UserPromptPart(content=example.user)]
        if index == 0:
            parts.insert(0, SystemPromptPart(content=config.system_prompt))
        history.append(ModelRequest(parts=parts))
        history.append(ModelResponse(parts=[TextPart(content=example.assistant)]))
    return history


class PydanticAISession(LanguageModelSession):
    """One oracle session backed by a cached Pydantic-AI agent per schema."""

    def __init__(
        self,
        oracle: "PydanticAIOracle",
        config: SessionConfig,
        signal: Optional[AbortSignal] = None
    ):
        super().__init__(config, signal)
        self._oracle = oracle
        self._history = build_seed_history(config)

    async def _prompt(self, text: str, schema: Dict[str, Any]) -> str:
        agent = self._oracle.agent_for(self.config, schema)
        result = await agent.run(text, message_history=list(self._history))
        # Pydantic-AI 1.0+: use .output instead of .data
        return json.dumps(result.output)

    async def clone(self) -> "PydanticAISession":
        return PydanticAISession(self._oracle, self.config, self.signal)


class PydanticAIOracle(OracleAdapter):
    """Creates Pydantic-AI backed sessions for every oracle line."""

    def __init__(self, model_name: str = "google-vertex:gemini-2.5-flash"):
        """
        Args:
            model_name: Pydantic-AI model id, e.g. ``google-vertex:gemini-2.5-flash``
        """
        self.model_name = model_name
        self._agents: Dict[Tuple[str, str], Agent] = {}
        logger.info(f"PydanticAIOracle using model: {model_name}")

    def agent_for(self, config: SessionConfig, schema: Dict[str, Any]) -> Agent:
        """Get or create the agent that answers ``config.line`` under ``schema``."""
        key = (config.line.value, json.dumps(schema, sort_keys=True))
        agent = self._agents.get(key)
        if agent is None:
            model_settings = ModelSettings()
            if config.temperature is not None:
                model_settings["temperature"] = config.temperature

            agent = Agent(
                model=self.model_name,
                output_type=NativeOutput(
                    StructuredDict(schema, name=f"{config.line.value}_response")
                ),
                model_settings=model_settings,
            )
            self._agents[key] = agent
            logger.debug(f"Created agent for line '{config.line.value}'")
        return agent

    async def create_session(
        self,
        config: SessionConfig,
        signal: Optional[AbortSignal] = None
    ) -> PydanticAISession:
        return PydanticAISession(self, config, signal)
