from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel

from pokemaker.agent.llm_client import LLMClient

InType = TypeVar("InType", bound=BaseModel)
OutType = TypeVar("OutType", bound=BaseModel)

class BaseAgent(ABC, Generic[InType, OutType]):
    """Abstract base class for the steps of the artwork pipeline."""

    def __init__(self, llm: LLMClient | None = None):
        self.llm = llm or LLMClient()

    @abstractmethod
    async def run(self, input_data: InType) -> OutType:
        """Run the agent on the given input to produce the output artifact."""
        pass
