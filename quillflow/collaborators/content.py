"""Content generation through pydantic-ai agents."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic_ai import Agent

from ..exceptions import CollaboratorError, DirectiveNotFound

logger = logging.getLogger(__name__)

DIRECTIVES_DIR = Path(__file__).resolve().parent.parent / "directives"


class AgentContentGenerator:
    """Run one pydantic-ai agent per directive.

    The directive markdown file becomes the agent's system prompt and the
    step context is sent as a JSON user prompt. Agents are built lazily and
    cached per directive.
    """

    def __init__(
        self,
        model: Any = "openai:gpt-4o",
        directives_path: Optional[str | Path] = None,
        temperature: float = 0.7,
    ) -> None:
        self.model = model
        self.directives_path = Path(directives_path) if directives_path else DIRECTIVES_DIR
        self.temperature = temperature
        self._agents: Dict[str, Agent] = {}

    def load_directive(self, directive: str) -> str:
        path = self.directives_path / f"{directive}.md"
        if not path.exists():
            raise DirectiveNotFound(f"Directive not found: {directive}")
        return path.read_text(encoding="utf-8")

    def agent_for(self, directive: str) -> Agent:
        agent = self._agents.get(directive)
        if agent is None:
            agent = Agent(
                self.model,
                system_prompt=self.load_directive(directive),
                model_settings={"temperature": self.temperature},
                name=directive,
            )
            self._agents[directive] = agent
        return agent

    async def generate(self, directive: str, context: Dict[str, Any]) -> str:
        agent = self.agent_for(directive)
        logger.debug(f"Running directive {directive}")
        result = await agent.run(json.dumps(context, default=str))
        if not result.output:
            raise CollaboratorError(f"No content returned for directive {directive}")
        return result.output
