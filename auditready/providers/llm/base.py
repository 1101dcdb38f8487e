from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Completion:
    text: str
    tokens_used: int


class CompletionProvider(Protocol):
    name: str

    async def complete(self, prompt: str, *, max_output_tokens: int) -> Completion:
        ...
