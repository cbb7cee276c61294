"""AI generation path: an abstract source and a timeout-bounded runner."""

from mathgen.ai.runner import AIGenerationRunner
from mathgen.ai.source import AIProblemSource

__all__ = [
    "AIGenerationRunner",
    "AIProblemSource",
]
