"""Generator Registry.

Central registry that maps each ProblemType to its generator and routes
configurations to them.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from mathgen.exceptions import ResourceNotFoundError, UnsupportedConfigError
from mathgen.logger import session_logger as logger
from mathgen.math_engine.base import ParameterDefinition, ProblemGenerator
from mathgen.models.enums import ProblemType


class GeneratorRegistry:
    """Registry of problem generators, one per ProblemType.

    Provides:
    - Lookup of the generator for a problem type
    - The parameters each generator accepts (for callers building configs)
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._generators: Dict[ProblemType, ProblemGenerator] = {}
        logger.info("GeneratorRegistry initialized")

    def register_generator(self, generator: ProblemGenerator) -> None:
        """Register a generator for its problem type.

        Raises:
            UnsupportedConfigError: If the problem type already has a generator
                or a difficulty default names an undeclared parameter
        """
        problem_type = generator.problem_type
        if problem_type in self._generators:
            raise UnsupportedConfigError(
                f"Generator for '{problem_type.value}' already registered",
                details={"problem_type": problem_type.value},
            )

        declared = {p.name for p in generator.get_parameters()}
        for level, defaults in generator.DEFAULT_PARAMETERS.items():
            undeclared = sorted(set(defaults) - declared)
            if undeclared:
                raise UnsupportedConfigError(
                    f"{problem_type.value} defaults use undeclared parameters",
                    details={"difficulty": level.value, "undeclared": undeclared},
                )

        self._generators[problem_type] = generator
        logger.info(
            "Generator registered",
            problem_type=problem_type.value,
            parameters=sorted(declared),
        )

    def get_generator(self, problem_type: ProblemType) -> ProblemGenerator:
        """Get the generator for ``problem_type``.

        Raises:
            ResourceNotFoundError: If no generator is registered for it
        """
        generator = self._generators.get(problem_type)
        if generator is None:
            raise ResourceNotFoundError(
                f"No generator registered for '{problem_type.value}'",
                details={"registered": self.get_problem_types()},
            )
        return generator

    def has_generator(self, problem_type: ProblemType) -> bool:
        return problem_type in self._generators

    def get_problem_types(self) -> List[str]:
        """Get list of all registered problem types."""
        return [t.value for t in self._generators]

    def get_parameters(self, problem_type: ProblemType) -> List[ParameterDefinition]:
        return self.get_generator(problem_type).get_parameters()

    def list_generators(self) -> Dict[str, str]:
        """Map problem type names to generator descriptions."""
        return {
            problem_type.value: generator.description
            for problem_type, generator in self._generators.items()
        }

    def as_mapping(self) -> Dict[ProblemType, ProblemGenerator]:
        return dict(self._generators)


# Global registry instance
_registry: Optional[GeneratorRegistry] = None


def get_registry() -> GeneratorRegistry:
    """Get or create the global generator registry."""
    global _registry
    if _registry is None:
        _registry = GeneratorRegistry()
    return _registry


def build_registry() -> GeneratorRegistry:
    """A fresh registry holding every built-in generator."""
    from mathgen.math_engine.generators import (
        AlgebraGenerator,
        ArithmeticGenerator,
        CalculusGenerator,
        GeometryGenerator,
        LinearAlgebraGenerator,
        MixedGenerator,
        ProbabilityGenerator,
        StatisticsGenerator,
        TrigonometryGenerator,
        WordProblemGenerator,
    )

    registry = GeneratorRegistry()

    # Add new generators here as they are implemented
    registry.register_generator(ArithmeticGenerator())
    registry.register_generator(AlgebraGenerator())
    registry.register_generator(GeometryGenerator())
    registry.register_generator(TrigonometryGenerator())
    registry.register_generator(CalculusGenerator())
    registry.register_generator(StatisticsGenerator())
    registry.register_generator(ProbabilityGenerator())
    registry.register_generator(LinearAlgebraGenerator())
    registry.register_generator(WordProblemGenerator())

    # Mixed draws from whatever concrete generators are registered above
    registry.register_generator(MixedGenerator(registry.as_mapping()))
    return registry


def initialize_registry() -> GeneratorRegistry:
    """Initialize the global registry with all built-in generators.

    Returns:
        The initialized GeneratorRegistry
    """
    global _registry
    _registry = build_registry()

    logger.info(
        "Registry initialized",
        problem_types=_registry.get_problem_types(),
    )
    return _registry


__all__ = [
    "GeneratorRegistry",
    "build_registry",
    "get_registry",
    "initialize_registry",
]
