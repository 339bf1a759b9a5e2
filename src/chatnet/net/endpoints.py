"""
Ordered table of candidate backend base URLs.

The table is built once when the network layer is composed and is never
mutated afterwards. The primary endpoint is always first; fallbacks follow in
declared order.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from chatnet.net.urls import validate_base_url


@dataclass(frozen=True)
class Endpoint:
    """One candidate base URL for reaching the backend."""

    url: str
    is_primary: bool = False


class EndpointTable:
    def __init__(self, endpoints: Sequence[Endpoint]):
        if not endpoints:
            raise ValueError("EndpointTable needs at least one endpoint")

        primaries = [e for e in endpoints if e.is_primary]
        if len(primaries) != 1:
            raise ValueError(f"EndpointTable needs exactly one primary endpoint, got {len(primaries)}")
        if not endpoints[0].is_primary:
            raise ValueError("The primary endpoint must be first in the table")

        seen: set[str] = set()
        ordered: list[Endpoint] = []
        for endpoint in endpoints:
            url = validate_base_url(endpoint.url)
            if url in seen:
                continue
            seen.add(url)
            ordered.append(Endpoint(url=url, is_primary=endpoint.is_primary))

        self._endpoints: tuple[Endpoint, ...] = tuple(ordered)

    @classmethod
    def from_urls(cls, primary: str, fallbacks: Iterable[str] = ()) -> "EndpointTable":
        """Build a table from a primary URL and fallbacks.

        A fallback equal to the primary is dropped.
        """
        endpoints = [Endpoint(url=primary, is_primary=True)]
        endpoints.extend(Endpoint(url=url, is_primary=False) for url in fallbacks)
        return cls(endpoints)

    @property
    def primary(self) -> Endpoint:
        return self._endpoints[0]

    @property
    def fallbacks(self) -> tuple[Endpoint, ...]:
        return self._endpoints[1:]

    def urls(self) -> list[str]:
        return [e.url for e in self._endpoints]

    def __iter__(self) -> Iterator[Endpoint]:
        return iter(self._endpoints)

    def __len__(self) -> int:
        return len(self._endpoints)

    def __contains__(self, url: object) -> bool:
        return any(e.url == url for e in self._endpoints)

    def __repr__(self) -> str:
        return f"EndpointTable({self.urls()!r})"
