"""Base source adapter interface."""

from abc import ABC, abstractmethod

from collectors.http_client import HttpClient
from core.config import SourceConfig
from schemas import RawPosting


class SourceAdapter(ABC):
    """Abstract base class for all job sources.

    An adapter knows how to ask one external source for one page of
    postings. It never sleeps, retries or counts requests itself; the
    collector wraps every call in the budget governor and retry policy.
    """

    source_type: str = "base"
    page_size: int = 20
    paginated: bool = True

    def __init__(self, config: SourceConfig, client: HttpClient, credentials: dict | None = None):
        self.config = config
        self.client = client
        self.credentials = credentials or {}

    @property
    def source_id(self) -> str:
        return self.config.source_id

    @abstractmethod
    async def fetch_page(self, query: str, location: str, page: int) -> list[RawPosting]:
        """
        Fetch one page of postings.

        Args:
            query: Search keywords, may be empty
            location: Location filter, may be empty
            page: 1-based page number

        Returns:
            Postings on that page; fewer than page_size means the last page

        Raises:
            RateLimited: the source answered 429
            SourceError: any other failure
        """
        pass
