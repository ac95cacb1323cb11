"""Action registry -- maps (connector kind, action name) pairs to handlers."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from writeback.connectors import ConnectorHierarchy
from writeback.errors import UnknownAction, UnsupportedConnector
from writeback.models import ActionName, Resource

# handler(engine, action, resource, arg_map, *, settings) -> result (or awaitable)
Handler = Callable[..., Any]


class ActionRegistry:
    """Central registry of action handlers keyed by connector kind and action.

    Lookup tries the exact kind first, then each ancestor in the connector
    hierarchy, then the default handler which reports an unknown or
    unsupported action.
    """

    def __init__(self, hierarchy: ConnectorHierarchy | None = None) -> None:
        self._hierarchy = hierarchy or ConnectorHierarchy()
        self._handlers: dict[tuple[str, ActionName], Handler] = {}
        self._default: Handler = self._unknown_or_unsupported

    @property
    def hierarchy(self) -> ConnectorHierarchy:
        return self._hierarchy

    def register(self, engine: str, action: str | ActionName, handler: Handler) -> None:
        """Register ``handler`` for ``(engine, action)``. Last registration wins."""
        self._handlers[(engine, ActionName.parse(action))] = handler

    def handler(self, engine: str, action: str) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register`."""

        def decorator(fn: Handler) -> Handler:
            self.register(engine, action, fn)
            return fn

        return decorator

    def set_default(self, handler: Handler) -> None:
        self._default = handler

    def get(self, engine: str, action: str | ActionName) -> Handler | None:
        """Return the most specific registered handler, or None."""
        key = ActionName.parse(action)
        for kind in self._hierarchy.ancestors(engine):
            handler = self._handlers.get((kind, key))
            if handler is not None:
                return handler
        return None

    def resolve(self, engine: str, action: str | ActionName) -> Handler:
        """Return the handler for ``(engine, action)``, falling back to the default."""
        handler = self.get(engine, action)
        return handler if handler is not None else self._default

    def known_actions(self) -> set[ActionName]:
        """Return every action with at least one registered handler."""
        return {action for _, action in self._handlers}

    def _unknown_or_unsupported(
        self,
        engine: str,
        action: ActionName,
        resource: Resource | None = None,
        arg_map: Any = None,
        **_: Any,
    ) -> Any:
        known = self.known_actions()
        if action not in known:
            valid = ", ".join(sorted(str(a) for a in known))
            raise UnknownAction(
                f"Unknown Action {action}. Valid Actions are: {valid or '(none)'}",
                details={"action": str(action), "known_actions": sorted(str(a) for a in known)},
            )
        raise UnsupportedConnector(
            f"Action {action} is not supported for {engine} Databases.",
            details={"action": str(action), "engine": engine},
        )
