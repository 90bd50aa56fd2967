"""
Extension Point Registry

Typed filter hooks for the host application. Each extension point is an
ExtensionPoint member that declares how many extra arguments travel with
the filtered value, so callers cannot dispatch on free-form strings.

Usage:
    registry = HookRegistry()
    registry.add_filter(ExtensionPoint.AUTHOR_LINK, my_callback)
    url = registry.apply_filters(ExtensionPoint.AUTHOR_LINK, url, author_id, ctx)
"""
import sys
import enum
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 10
LATE_PRIORITY = sys.maxsize


class HookSignatureError(TypeError):
    """Raised when an extension point is applied with the wrong arguments."""


class ExtensionPoint(enum.Enum):
    """Extension points exposed by the host, with their extra argument count."""

    # (name, number of arguments after the filtered value)
    CANONICAL_REDIRECT = ('canonical_redirect', 2)      # requested_url, ctx
    AUTHOR_LINK = ('author_link', 2)                    # author_id, ctx
    FEED_AUTHOR = ('feed_author', 1)                    # ctx
    FEED_COMMENT_AUTHOR = ('feed_comment_author', 1)    # ctx
    COMMENT_AUTHOR = ('comment_author', 1)              # ctx
    REST_AUTHENTICATION_ERRORS = ('rest_authentication_errors', 1)  # ctx
    LOGIN_ERRORS = ('login_errors', 0)

    # Override points for replacement text
    FEED_AUTHOR_REPLACEMENT = ('feed_author_replacement', 0)
    COMMENT_AUTHOR_REPLACEMENT = ('comment_author_replacement', 0)
    LOGIN_ERROR_REPLACEMENT = ('login_error_replacement', 0)

    @property
    def hook_name(self) -> str:
        return self.value[0]

    @property
    def extra_args(self) -> int:
        return self.value[1]


class HookRegistry:
    """
    Filter registry keyed by ExtensionPoint.

    Callbacks run in ascending priority; callbacks sharing a priority run
    in registration order. Each callback receives the value returned by the
    previous one followed by the extension point's extra arguments.
    """

    def __init__(self):
        self._filters: Dict[ExtensionPoint, List[Tuple[int, int, Callable]]] = {}
        self._sequence = 0

    @staticmethod
    def _check_point(point):
        if not isinstance(point, ExtensionPoint):
            raise TypeError(f"Extension point must be an ExtensionPoint, got {point!r}")

    def add_filter(self, point: ExtensionPoint, callback: Callable, priority: int = DEFAULT_PRIORITY):
        """Register a callback on an extension point."""
        self._check_point(point)
        if not callable(callback):
            raise TypeError(f"Filter callback for {point.hook_name} is not callable")

        self._sequence += 1
        entries = self._filters.setdefault(point, [])
        entries.append((priority, self._sequence, callback))
        entries.sort(key=lambda entry: (entry[0], entry[1]))

        logger.debug(f"Filter {getattr(callback, '__name__', callback)!s} added to "
                     f"{point.hook_name} at priority {priority}")

    def remove_filter(self, point: ExtensionPoint, callback: Callable) -> bool:
        """Remove every registration of a callback. Returns True if any was removed."""
        self._check_point(point)
        entries = self._filters.get(point, [])
        remaining = [entry for entry in entries if entry[2] != callback]
        self._filters[point] = remaining
        return len(remaining) != len(entries)

    def has_filter(self, point: ExtensionPoint, callback: Optional[Callable] = None) -> bool:
        """Check whether a point has any filter, or a specific one."""
        self._check_point(point)
        entries = self._filters.get(point, [])
        if callback is None:
            return bool(entries)
        return any(entry[2] == callback for entry in entries)

    def apply_filters(self, point: ExtensionPoint, value: Any, *args) -> Any:
        """Run a value through every filter registered on a point."""
        self._check_point(point)
        if len(args) != point.extra_args:
            raise HookSignatureError(
                f"{point.hook_name} expects {point.extra_args} extra argument(s), got {len(args)}"
            )

        for _priority, _seq, callback in list(self._filters.get(point, [])):
            value = callback(value, *args)
        return value

    def override(self, point: ExtensionPoint) -> Callable[[Any], Any]:
        """Return a one-argument function that applies an override point."""
        self._check_point(point)
        if point.extra_args != 0:
            raise HookSignatureError(f"{point.hook_name} is not an override point")
        return lambda value: self.apply_filters(point, value)
