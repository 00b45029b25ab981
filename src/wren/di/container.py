"""Scoped dependency container.

The application owns one root ``Container`` whose bindings are fixed
once the app freezes. Each request gets a child scope that overlays the
root bindings with request-scoped values (the request, the response,
the session and auth handles, the action context). The parent is never
written through a child.

Binding kinds::

    container.bind_value(Settings, settings)
    container.bind_class(Repository, SqlRepository, singleton=True)
    container.bind_factory(Clock, make_clock)
    container.bind_value(Database, replica, name="replica")

Constructor injection uses the type hints of ``__init__``; field
injection fills class attributes annotated ``Annotated[T, Inject()]``.
Unbound concrete classes are autowired as transients.

Thread safety:
    Bindings are read-only after freeze. Singleton creation is guarded
    by a per-binding lock so concurrent first requests build one instance.
"""

from __future__ import annotations

import inspect
import logging
import threading
from collections import ChainMap
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, get_args, get_origin, get_type_hints

from wren.errors import CyclicDependency, UnresolvedDependency

logger = logging.getLogger("wren.di")

type Key = tuple[Any, str | None]
type Chain = tuple[Key, ...]

_UNSET: Any = object()


@dataclass(frozen=True, slots=True)
class Inject:
    """Marks a constructor parameter or class attribute for injection.

    Usage::

        class UserController:
            audit: Annotated[AuditLog, Inject()]

            def __init__(self, db: Annotated[Database, Inject("replica")]) -> None:
                self.db = db
    """

    name: str | None = None


@dataclass(frozen=True, slots=True)
class _Dependency:
    """One injectable parameter of a constructor or factory."""

    param: str
    annotation: Any
    name: str | None
    has_default: bool
    optional: bool


class _Binding:
    """How to produce an instance for one key."""

    __slots__ = ("_instance", "_lock", "kind", "owner", "provider", "singleton")

    def __init__(
        self,
        kind: Literal["value", "class", "factory"],
        provider: Any,
        owner: Container,
        *,
        singleton: bool = False,
    ) -> None:
        self.kind = kind
        self.provider = provider
        self.owner = owner
        self.singleton = singleton
        self._instance: Any = _UNSET
        self._lock = threading.RLock()

    def get(self, requester: Container, chain: Chain) -> Any:
        if self.kind == "value":
            return self.provider
        if not self.singleton:
            return self._build(requester, chain)

        if self._instance is not _UNSET:
            return self._instance
        with self._lock:
            if self._instance is _UNSET:
                self._instance = self._build(self.owner, chain)
                logger.debug("Created singleton %s", _label(chain[-1]))
            return self._instance

    def _build(self, container: Container, chain: Chain) -> Any:
        if self.kind == "class":
            return container._construct(self.provider, chain)
        return container._call(self.provider, chain)


def _label(key: Key) -> str:
    annotation, name = key
    label = getattr(annotation, "__qualname__", None) or repr(annotation)
    return f"{label}[{name!r}]" if name is not None else label


def _is_protocol(cls: type) -> bool:
    return bool(getattr(cls, "_is_protocol", False))


def _has_signature(cls: type) -> bool:
    try:
        inspect.signature(cls)
    except (TypeError, ValueError):
        return False
    return True


def is_autowirable(annotation: Any) -> bool:
    """True for concrete, user-defined classes the container may build unbound."""
    return (
        isinstance(annotation, type)
        and annotation is not inspect.Parameter.empty
        and annotation.__module__ not in ("builtins", "typing")
        and not inspect.isabstract(annotation)
        and not _is_protocol(annotation)
        and not issubclass(annotation, Enum)
        and _has_signature(annotation)
    )


def _unwrap(annotation: Any) -> tuple[Any, str | None, bool]:
    """Split ``Annotated[T | None, Inject(name)]`` into ``(T, name, optional)``."""
    name: str | None = None
    if get_origin(annotation) is Annotated:
        base, *metadata = get_args(annotation)
        for meta in metadata:
            if isinstance(meta, Inject):
                name = meta.name
        annotation = base
    optional = False
    args = get_args(annotation)
    if args and type(None) in args:
        members = [a for a in args if a is not type(None)]
        if len(members) == 1:
            annotation = members[0]
            optional = True
    return annotation, name, optional


def dependencies(func: Callable[..., Any]) -> list[_Dependency]:
    """List the injectable parameters of a constructor or factory."""
    target = func.__init__ if isinstance(func, type) else func
    try:
        hints = get_type_hints(target, include_extras=True)
    except (NameError, TypeError):
        hints = {}
    signature = inspect.signature(func)

    deps: list[_Dependency] = []
    for param in signature.parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        raw = hints.get(param.name, param.annotation)
        annotation, name, optional = _unwrap(raw)
        deps.append(
            _Dependency(
                param=param.name,
                annotation=annotation,
                name=name,
                has_default=param.default is not param.empty,
                optional=optional,
            )
        )
    return deps


def injected_fields(cls: type) -> list[tuple[str, Any, str | None]]:
    """List class attributes annotated ``Annotated[T, Inject()]``."""
    try:
        hints = get_type_hints(cls, include_extras=True)
    except (NameError, TypeError):
        return []
    fields: list[tuple[str, Any, str | None]] = []
    for attr, hint in hints.items():
        if get_origin(hint) is not Annotated:
            continue
        if not any(isinstance(meta, Inject) for meta in get_args(hint)[1:]):
            continue
        annotation, name, _ = _unwrap(hint)
        fields.append((attr, annotation, name))
    return fields


class Container:
    """A hierarchical registry that resolves and builds objects.

    Usage::

        root = Container()
        root.bind_class(Repository, SqlRepository, singleton=True)

        scope = root.child()
        scope.bind_value(Request, request)
        controller = scope.resolve(UserController)
    """

    __slots__ = ("_bindings", "_parent", "_reserved")

    def __init__(self, parent: Container | None = None) -> None:
        self._parent = parent
        self._bindings: ChainMap[Key, _Binding] = (
            parent._bindings.new_child() if parent is not None else ChainMap()
        )
        self._reserved: frozenset[Any] = parent._reserved if parent is not None else frozenset()

    @property
    def parent(self) -> Container | None:
        return self._parent

    def child(self) -> Container:
        """Create a scope that inherits every binding of this container."""
        return Container(self)

    # -- Binding --

    def bind_value(self, annotation: Any, value: Any, *, name: str | None = None) -> None:
        """Bind a pre-built instance."""
        self._bindings[(annotation, name)] = _Binding("value", value, self)

    def bind_class(
        self,
        annotation: Any,
        impl: type | None = None,
        *,
        name: str | None = None,
        singleton: bool = False,
    ) -> None:
        """Bind *annotation* to a class built on demand (defaults to itself)."""
        impl = impl or annotation
        if not isinstance(impl, type):
            msg = f"bind_class expects a class, got {impl!r}"
            raise TypeError(msg)
        self._bindings[(annotation, name)] = _Binding("class", impl, self, singleton=singleton)

    def bind_factory(
        self,
        annotation: Any,
        factory: Callable[..., Any],
        *,
        name: str | None = None,
        singleton: bool = False,
    ) -> None:
        """Bind *annotation* to a factory. The factory's own parameters are injected."""
        self._bindings[(annotation, name)] = _Binding(
            "factory", factory, self, singleton=singleton
        )

    def reserve(self, *annotations: Any) -> None:
        """Never autowire *annotations*; only an explicit binding provides them.

        Used for request-scoped types, which exist only once a request
        scope binds them. Child scopes created afterwards inherit the set.
        """
        self._reserved = self._reserved | frozenset(annotations)

    def is_bound(self, annotation: Any, name: str | None = None) -> bool:
        return (annotation, name) in self._bindings

    def can_resolve(self, annotation: Any, name: str | None = None) -> bool:
        """True if ``resolve(annotation, name)`` has a binding or can autowire."""
        if (annotation, name) in self._bindings:
            return True
        return name is None and self._autowires(annotation)

    def _autowires(self, annotation: Any) -> bool:
        return annotation not in self._reserved and is_autowirable(annotation)

    # -- Resolution --

    def resolve(self, annotation: Any, name: str | None = None) -> Any:
        """Return an instance for *annotation* (and optional binding *name*).

        Raises ``UnresolvedDependency`` when nothing is bound and the type
        cannot be autowired, and ``CyclicDependency`` when the graph loops.
        Exceptions raised by constructors and factories propagate unchanged.
        """
        return self._resolve(annotation, name, ())

    def resolve_optional(self, annotation: Any, name: str | None = None) -> Any:
        """Like ``resolve`` but returns ``None`` when nothing can provide the type."""
        if not self.can_resolve(annotation, name):
            return None
        return self._resolve(annotation, name, ())

    def instantiate[T](self, cls: type[T]) -> T:
        """Build *cls* with injection, ignoring any binding registered for it."""
        return self._construct(cls, ((cls, None),))

    def call(self, func: Callable[..., Any]) -> Any:
        """Call *func* with every parameter resolved from this container."""
        return self._call(func, ())

    def _resolve(self, annotation: Any, name: str | None, chain: Chain) -> Any:
        key: Key = (annotation, name)
        if key in chain:
            raise CyclicDependency((*chain, key))
        binding = self._bindings.get(key)
        if binding is not None:
            return binding.get(self, (*chain, key))
        if name is None and self._autowires(annotation):
            return self._construct(annotation, (*chain, key))
        raise UnresolvedDependency(key, chain)

    def _arguments(self, deps: Iterable[_Dependency], chain: Chain) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        for dep in deps:
            # Without an explicit binding the parameter's own default wins
            if dep.has_default and not self.is_bound(dep.annotation, dep.name):
                continue
            if not self.can_resolve(dep.annotation, dep.name):
                if dep.has_default:
                    continue
                if dep.optional:
                    kwargs[dep.param] = None
                    continue
                raise UnresolvedDependency((dep.annotation, dep.name), chain)
            kwargs[dep.param] = self._resolve(dep.annotation, dep.name, chain)
        return kwargs

    def _construct(self, cls: type, chain: Chain) -> Any:
        deps = dependencies(cls)
        instance = cls(**self._arguments(deps, chain))
        constructor_params = {dep.param for dep in deps}
        for attr, annotation, name in injected_fields(cls):
            if attr in constructor_params:
                continue
            setattr(instance, attr, self._resolve(annotation, name, chain))
        return instance

    def _call(self, func: Callable[..., Any], chain: Chain) -> Any:
        return func(**self._arguments(dependencies(func), chain))

    # -- Startup validation --

    def validate(self, roots: Iterable[Any], *, deferred: Iterable[Any] = ()) -> None:
        """Walk the dependency graph of *roots* without building anything.

        Types in *deferred* are treated as resolvable: they are bound per
        request and not known at startup. Below a singleton binding they
        are not, since singletons are built against the container that
        owns them. Raises the first ``UnresolvedDependency`` or
        ``CyclicDependency`` found.
        """
        later = frozenset(deferred)
        for root in roots:
            self._check(root, None, (), later)

    def _check(self, annotation: Any, name: str | None, chain: Chain, later: frozenset[Any]) -> None:
        key: Key = (annotation, name)
        if key in chain:
            raise CyclicDependency((*chain, key))
        if annotation in later:
            return
        chain = (*chain, key)
        binding = self._bindings.get(key)
        if binding is not None:
            if binding.kind == "value":
                return
            if binding.singleton:
                later = frozenset()
            self._check_deps(binding.provider, chain, later)
            return
        if name is None and self._autowires(annotation):
            self._check_deps(annotation, chain, later)
            return
        raise UnresolvedDependency(key, chain[:-1])

    def _check_deps(self, func: Callable[..., Any], chain: Chain, later: frozenset[Any]) -> None:
        deps = dependencies(func)
        for dep in deps:
            if dep.annotation in later:
                continue
            if dep.has_default and not self.is_bound(dep.annotation, dep.name):
                continue
            if dep.optional and not self.can_resolve(dep.annotation, dep.name):
                continue
            self._check(dep.annotation, dep.name, chain, later)
        if isinstance(func, type):
            constructor_params = {dep.param for dep in deps}
            for attr, annotation, name in injected_fields(func):
                if attr not in constructor_params:
                    self._check(annotation, name, chain, later)


def create_child_scope(parent: Container) -> Container:
    """Create a request scope that overlays *parent*'s bindings."""
    return parent.child()
