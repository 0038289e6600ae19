from __future__ import annotations

import abc
from typing import TYPE_CHECKING

import requests

if TYPE_CHECKING:
    from api.schemas.shelters import ShelterRecord

SOURCE_KIND_NATURAL = "natural"
SOURCE_KIND_AIR_RAID = "air_raid"


class ShelterSource(abc.ABC):
    """Base class for upstream shelter feeds.

    Subclasses should implement:
    - `name`: short identifier used in logs and error messages.
    - `kind`: SOURCE_KIND_NATURAL or SOURCE_KIND_AIR_RAID; the unifier uses it to
      enforce the disaster-bit rules for every record the source yields.
    - `fetch()`: download and parse the feed into unified records, raising
      `support.errors.UpstreamError` on network or top-level payload failure.

    Sources know nothing about the cache; they are plain fetch-and-convert.
    """

    name: str
    kind: str

    def __init__(
        self,
        *,
        url: str,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.url = url
        self.timeout_seconds = float(timeout_seconds)
        self.session = session
        self.user_agent = user_agent

    @abc.abstractmethod
    def fetch(self) -> list["ShelterRecord"]:  # pragma: no cover
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, url={self.url!r})"
