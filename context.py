"""
Request context passed to the username protection rules.

Rules never read Flask globals; the host builds a RequestContext once per
request with from_request() and hands it to each extension point.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional
from urllib.parse import parse_qsl


@dataclass(frozen=True)
class UserDescriptor:
    """The authenticated caller, reduced to what the rules need."""
    id: int
    capabilities: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class RequestContext:
    """Immutable view of one incoming request."""
    path: str
    query_string: str = ''
    url: str = ''
    user: Optional[UserDescriptor] = None
    query: Mapping[str, str] = field(default=None, compare=False)

    def __post_init__(self):
        if self.query is None:
            parsed = dict(parse_qsl(self.query_string, keep_blank_values=True))
            object.__setattr__(self, 'query', MappingProxyType(parsed))

    @property
    def request_uri(self) -> str:
        """Path plus query string, as the client sent it."""
        if self.query_string:
            return f"{self.path}?{self.query_string}"
        return self.path

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def can(self, capability: str) -> bool:
        return self.user is not None and capability in self.user.capabilities

    def has_query_param(self, name: str) -> bool:
        return name in self.query


def from_request(request, user=None) -> RequestContext:
    """
    Build a RequestContext from a Flask request.

    Args:
        request: The Flask request object
        user: The logged-in user model (anything with id and capabilities), or None
    """
    descriptor = None
    if user is not None:
        descriptor = UserDescriptor(id=user.id, capabilities=frozenset(user.capabilities))

    query_string = request.query_string.decode('utf-8', errors='replace')
    return RequestContext(
        path=request.path,
        query_string=query_string,
        url=request.url,
        user=descriptor,
        query=MappingProxyType(request.args.to_dict()),
    )
