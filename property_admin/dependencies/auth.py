from fastapi import Depends
from property_admin.schemas.auth import Session
from property_admin.services.console import AdminConsole

# One console per process, built on first use
console: AdminConsole | None = None

def get_console() -> AdminConsole:
    global console
    if console is None:
        console = AdminConsole()
    return console

async def require_session(console: AdminConsole = Depends(get_console)) -> Session:
    """Gate for protected views: without a token the caller is sent to the login view."""
    return console.gate.require()
