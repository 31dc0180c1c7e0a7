from typing import Any, Optional
from structlog import get_logger
from property_admin.config import settings
from property_admin.exceptions import ApiError, Unauthorized
from property_admin.schemas.property import FilterState, PaginationMeta, PropertyListResponse
from property_admin.schemas.views import ListViewState, PaginationState
from property_admin.services.api import PropertiesApi
from property_admin.services.cache import CacheKey, EntryStatus, QueryCache, property_list_key

logger = get_logger()

PAGE_WINDOW = 5
PRICE_FILTERS = ("min_price", "max_price")

def default_filters(config=None) -> FilterState:
    config = config or settings
    return FilterState(sort=config.DEFAULT_SORT, order=config.DEFAULT_ORDER)

class PropertyListViewModel:
    """State behind the property list screen: filters, pagination and the rows for them.

    The filter state is the cache key. Changing any filter goes back to the
    first page; paging is clamped to the pages the server reported.
    """

    def __init__(self, api: PropertiesApi, cache: QueryCache, filters: Optional[FilterState] = None):
        self.api = api
        self.cache = cache
        self.filters = filters or default_filters()
        self.closed = False

    @property
    def key(self) -> CacheKey:
        return property_list_key(self.filters.to_params())

    def _response(self) -> Optional[PropertyListResponse]:
        entry = self.cache.peek(self.key)
        return entry.value if entry is not None else None

    @property
    def meta(self) -> Optional[PaginationMeta]:
        response = self._response()
        return response.meta if response is not None else None

    def apply_filter(self, field: str, value: Any) -> bool:
        """Change one filter without loading. Returns whether the filters changed."""
        if field == "page":
            return self.apply_page(int(value))
        if field not in FilterState.model_fields:
            raise ValueError(f"Unknown filter: {field}")
        if field in PRICE_FILTERS and isinstance(value, str):
            value = int(value) if value.strip() else None
        elif value is None and field not in PRICE_FILTERS:
            value = ""
        if getattr(self.filters, field) == value and self.filters.page == 1:
            return False
        self.filters = FilterState(**{**self.filters.model_dump(), field: value, "page": 1})
        return True

    def apply_page(self, page: int) -> bool:
        meta = self.meta
        last_page = meta.last_page if meta is not None else None
        target = max(1, page)
        if last_page is not None:
            target = min(target, max(1, last_page))
        if target == self.filters.page:
            return False
        self.filters = self.filters.model_copy(update={"page": target})
        return True

    async def set_filter(self, field: str, value: Any) -> ListViewState:
        self.apply_filter(field, value)
        return await self.load()

    async def go_to_page(self, page: int) -> ListViewState:
        if not self.apply_page(page):
            return self.view_state()
        return await self.load()

    async def load(self) -> ListViewState:
        if self.closed:
            return self.view_state()
        filters = self.filters
        try:
            await self.cache.fetch(property_list_key(filters.to_params()), lambda: self.api.list(filters))
        except Unauthorized:
            raise
        except ApiError as e:
            logger.warning("Property list failed", page=filters.page, error=e.message)
        return self.view_state()

    def close(self) -> None:
        self.closed = True

    def view_state(self) -> ListViewState:
        entry = self.cache.peek(self.key)
        if entry is None:
            return ListViewState(loading=True, filters=self.filters)
        response: Optional[PropertyListResponse] = entry.value
        error = None
        if entry.status is EntryStatus.ERROR and entry.error is not None:
            error = getattr(entry.error, "message", str(entry.error))
        pagination = None
        if response is not None and response.meta is not None:
            meta = response.meta
            pagination = PaginationState(
                current_page=meta.current_page,
                last_page=meta.last_page,
                total=meta.total,
                pages=list(range(1, min(PAGE_WINDOW, meta.last_page) + 1)),
                has_previous=meta.current_page > 1,
                has_next=meta.current_page < meta.last_page,
            )
        return ListViewState(
            loading=entry.status in (EntryStatus.IDLE, EntryStatus.PENDING),
            error=error,
            rows=response.data if response is not None else [],
            pagination=pagination,
            filters=self.filters,
        )
