# Dependency Injection Container.

import logging
from typing import Callable, Dict, List, Optional

from component_bus.channels.transport import NullTransport, Transport
from component_bus.exceptions import UnknownComponentError
from component_bus.page import Page
from component_bus.settings import Settings

logger = logging.getLogger(__name__)


class PageStore:
    """In-memory set of live pages, keyed by page id."""

    def __init__(self) -> None:
        self._pages: Dict[str, Page] = {}

    def add(self, page: Page) -> Page:
        self._pages[page.page_id] = page
        return page

    def get(self, page_id: str) -> Page:
        try:
            return self._pages[page_id]
        except KeyError:
            raise UnknownComponentError(f"Unknown page: {page_id}")

    def remove(self, page_id: str) -> Page:
        """Remove a page and tear down its instances."""
        page = self.get(page_id)
        del self._pages[page_id]
        page.teardown()
        return page

    def page_ids(self) -> List[str]:
        return list(self._pages)

    def clear(self) -> None:
        for page_id in list(self._pages):
            self.remove(page_id)

    def __len__(self) -> int:
        return len(self._pages)


class DependencyContainer:
    """Holds shared dependencies for the application.

    It is used to inject dependencies into the application and to make it easier to mock dependencies for testing.
    """

    def __init__(
        self,
        settings: Settings,
        page_store: Optional[PageStore] = None,
        transport_factory: Optional[Callable[[], Transport]] = None,
    ) -> None:
        """
        Initializes the container.

        Args:
            settings: Application settings.
            page_store: Registry of live pages.
            transport_factory: Creates the pub/sub transport used by each new page.
        """
        self.settings = settings
        self.page_store = page_store or PageStore()
        self.transport_factory = transport_factory or NullTransport

    def create_page(self) -> Page:
        """Create and store a new page wired to a fresh transport."""
        page = Page(transport=self.transport_factory(), settings=self.settings)
        logger.info(f"Created page {page.page_id}")
        return self.page_store.add(page)
