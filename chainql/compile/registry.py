"""Dialect name → compiler class lookup.

The four built-in dialects are registered by ``chainql/__init__.py``.  A
third-party dialect plugs in the same way and is then reachable through
``CompilerFactory.create`` or a ``Session(..., compiler=...)`` override::

    from chainql.compile.registry import CompilerFactory

    @CompilerFactory.register("oracle")
    class OracleCompiler(SQLCompiler):
        ...
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import ClassVar

from chainql.compile.base import SQLCompiler
from chainql.errors import ConfigurationError, UnknownDialectError


def _normalize(name: str | Enum) -> str:
    value = name.value if isinstance(name, Enum) else name
    return str(value).strip().lower()


class CompilerFactory:
    """Class-level registry of :class:`SQLCompiler` implementations.

    Names are matched case-insensitively; :class:`~chainql.schema.dialect.Dialect`
    members may be passed wherever a name is expected.
    """

    _compilers: ClassVar[dict[str, type[SQLCompiler]]] = {}

    @classmethod
    def register(
        cls, name: str | Enum
    ) -> Callable[[type[SQLCompiler]], type[SQLCompiler]]:
        """Class decorator form of :meth:`register_class`."""

        def decorator(compiler_cls: type[SQLCompiler]) -> type[SQLCompiler]:
            cls.register_class(name, compiler_cls)
            return compiler_cls

        return decorator

    @classmethod
    def register_class(cls, name: str | Enum, compiler_cls: type[SQLCompiler]) -> None:
        """Map ``name`` to ``compiler_cls``, replacing any earlier entry.

        Raises:
            ConfigurationError: If ``compiler_cls`` is not a concrete
                :class:`SQLCompiler` subclass or ``name`` is blank.
        """
        key = _normalize(name)
        if not key:
            raise ConfigurationError("A dialect name cannot be blank.")
        if not (isinstance(compiler_cls, type) and issubclass(compiler_cls, SQLCompiler)):
            raise ConfigurationError(f"{compiler_cls!r} is not an SQLCompiler subclass.")
        cls._compilers[key] = compiler_cls

    @classmethod
    def unregister(cls, name: str | Enum) -> None:
        cls._compilers.pop(_normalize(name), None)

    @classmethod
    def create(cls, name: str | Enum) -> SQLCompiler:
        """Return a new compiler for ``name``.

        Raises:
            UnknownDialectError: If nothing is registered under ``name``.
        """
        compiler_cls = cls._compilers.get(_normalize(name))
        if compiler_cls is None:
            raise UnknownDialectError(_normalize(name), cls.registered_targets())
        return compiler_cls()

    @classmethod
    def registered_targets(cls) -> list[str]:
        return sorted(cls._compilers)
