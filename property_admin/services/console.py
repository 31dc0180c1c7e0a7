from typing import Optional
from httpx import AsyncBaseTransport
from structlog import get_logger
from property_admin.config import Settings, settings as default_settings
from property_admin.services.api import AuthApi, PropertiesApi
from property_admin.services.cache import QueryCache
from property_admin.services.http import HttpClient
from property_admin.services.session import MemoryTokenStore, RedisTokenStore, SessionGate, TokenStore
from property_admin.viewmodels.login import LoginViewModel
from property_admin.viewmodels.property_detail import PropertyDetailViewModel
from property_admin.viewmodels.property_form import PropertyFormViewModel
from property_admin.viewmodels.property_list import PropertyListViewModel, default_filters

logger = get_logger()

def build_token_store(config: Settings) -> TokenStore:
    if config.REDIS_URL:
        return RedisTokenStore.from_url(config.REDIS_URL, config.SESSION_KEY)
    return MemoryTokenStore()

class AdminConsole:
    """Everything one operator's console shares: HTTP client, query cache, session.

    Also tracks which screens are open. Opening a form or detail screen
    closes the previous one, so late responses for it are ignored.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        transport: Optional[AsyncBaseTransport] = None,
        store: Optional[TokenStore] = None,
    ):
        self.config = config or default_settings
        self.cache = QueryCache()
        self.http = HttpClient(
            self.config.API_URL,
            timeout=self.config.REQUEST_TIMEOUT,
            transport=transport,
            get_token=lambda: self.gate.token,
            on_unauthorized=lambda: self.gate.force_logout(),
        )
        self.auth = AuthApi(self.http)
        self.properties = PropertiesApi(self.http)
        self.gate = SessionGate(self.auth, store or build_token_store(self.config), self.cache)
        self.list_screen = PropertyListViewModel(self.properties, self.cache, default_filters(self.config))
        self.form_screen: Optional[PropertyFormViewModel] = None
        self.detail_screen: Optional[PropertyDetailViewModel] = None

    async def startup(self) -> None:
        await self.gate.restore()
        logger.info("Console started", api_url=self.config.API_URL, authenticated=self.gate.is_authenticated)

    async def shutdown(self) -> None:
        self.close_screens()
        await self.http.aclose()
        await self.gate.store.close()

    def login_form(self) -> LoginViewModel:
        return LoginViewModel(self.gate)

    def open_form(self, property_id: Optional[int] = None) -> PropertyFormViewModel:
        current = self.form_screen
        if current is not None and not current.closed and current.property_id == property_id:
            return current
        if current is not None:
            current.close()
        self.form_screen = PropertyFormViewModel(self.properties, self.cache, property_id)
        return self.form_screen

    def close_form(self) -> None:
        if self.form_screen is not None:
            self.form_screen.close()
            self.form_screen = None

    def open_detail(self, property_id: int) -> PropertyDetailViewModel:
        current = self.detail_screen
        if current is not None and not current.closed and current.property_id == property_id:
            return current
        if current is not None:
            current.close()
        self.detail_screen = PropertyDetailViewModel(self.properties, self.cache, property_id)
        return self.detail_screen

    def close_screens(self) -> None:
        self.close_form()
        if self.detail_screen is not None:
            self.detail_screen.close()
            self.detail_screen = None

    async def logout(self) -> None:
        await self.gate.logout()
        self.close_screens()
        self.list_screen.close()
        self.list_screen = PropertyListViewModel(self.properties, self.cache, default_filters(self.config))
