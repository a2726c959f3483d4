from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class Completion:
    """Raw text of the first candidate plus token accounting."""

    text: str
    usage: dict[str, int] = field(default_factory=dict)


class BaseLLM(ABC):
    """Abstract base class for text-generation backends."""

    @abstractmethod
    async def complete(self, prompt: str) -> Completion:
        """Send one prompt and return the first candidate.

        Raises:
            GenerationError: on transport failure, non-2xx status, or a
                response without a usable candidate.
        """
        ...

    async def test_connection(self) -> bool:
        """Whether the backend currently answers."""
        return True

    async def aclose(self) -> None:
        """Release any transport resources."""
        pass
