from fastapi import APIRouter, Depends, Form
from fastapi.responses import JSONResponse, RedirectResponse
from structlog import get_logger
from property_admin.dependencies.auth import get_console
from property_admin.schemas.views import Outcome
from property_admin.services.console import AdminConsole

logger = get_logger()
router = APIRouter(tags=["auth"])

@router.get("/login")
async def login_view(console: AdminConsole = Depends(get_console)):
    if console.gate.is_authenticated:
        return RedirectResponse("/", status_code=303)
    return {"authenticated": False}

@router.post("/login")
async def login(email: str = Form(""), password: str = Form(""), console: AdminConsole = Depends(get_console)):
    result = await console.login_form().submit(email, password)
    if result.outcome is Outcome.SUCCESS:
        logger.info("Operator logged in", user_id=result.user.id if result.user else None)
        return result.model_dump()
    if result.outcome is Outcome.INVALID:
        status_code = 422
    elif result.outcome is Outcome.REJECTED:
        status_code = 409
    else:
        # bad credentials stay a 401, an unreachable API is a gateway error
        status_code = 401 if result.status_code == 401 else 502
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))

@router.post("/logout")
async def logout(console: AdminConsole = Depends(get_console)):
    await console.logout()
    return RedirectResponse("/login", status_code=303)
