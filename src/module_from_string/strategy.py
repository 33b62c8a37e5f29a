"""Strategy interface for asynchronous module loading."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from .options import Options


class ImportStrategy(ABC):
    name: str

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    @abstractmethod
    async def load(self, code: str, options: Options) -> Mapping[str, Any]:
        """Execute *code* with *options* and return the module namespace."""
