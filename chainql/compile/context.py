"""Compilation context value object.

Packages the ``(compiler, resolver, config)`` data clump shared by the
assembler, the whole-statement builder and every clause-level sub-builder
into a single cohesive object.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from chainql.compile.base import SQLCompiler

if TYPE_CHECKING:
    from chainql.schema.config import SqlConfig
    from chainql.schema.resolver import MetadataResolver


@dataclass(frozen=True)
class CompilationContext:
    """Immutable context shared by every statement a session assembles.

    Attributes:
        compiler: Dialect-specific SQL compiler instance.
        resolver: Entity metadata resolver (owns the metadata cache).
        config: Naming configuration (placeholder rendering).
    """

    compiler: SQLCompiler
    resolver: MetadataResolver
    config: SqlConfig

    @classmethod
    def from_resolver(cls, resolver: MetadataResolver) -> CompilationContext:
        return cls(compiler=resolver.compiler, resolver=resolver, config=resolver.config)

    def placeholder(self, key: str) -> str:
        return self.config.placeholder(key)
