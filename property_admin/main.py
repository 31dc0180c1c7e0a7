from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from structlog import get_logger
from property_admin.dependencies import auth as auth_deps
from property_admin.dependencies.auth import require_session
from property_admin.exceptions import ApiError, LoginRequired, NotFound, Unauthorized, ValidationFailed
from property_admin.routers import auth
from property_admin.routers import properties

logger = get_logger()

app = FastAPI(title="Property Admin Console")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

@app.on_event("startup")
async def startup_event():
    await auth_deps.get_console().startup()

@app.on_event("shutdown")
async def shutdown_event():
    if auth_deps.console is not None:
        await auth_deps.console.shutdown()

@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse("/login", status_code=303)

@app.exception_handler(Unauthorized)
async def unauthorized_handler(request: Request, exc: Unauthorized):
    # the HTTP client already dropped the session
    logger.warning("Redirecting to login after 401", path=request.url.path)
    return RedirectResponse("/login", status_code=303)

@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": exc.message or "Property not found"})

@app.exception_handler(ValidationFailed)
async def validation_failed_handler(request: Request, exc: ValidationFailed):
    return JSONResponse(status_code=422, content={"message": exc.message, "errors": exc.errors})

@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    logger.error("Upstream API error", path=request.url.path, status_code=exc.status_code, error=exc.message)
    return JSONResponse(status_code=502, content={"detail": exc.message})

app.include_router(auth.router)
app.include_router(properties.router)

@app.get("/", dependencies=[Depends(require_session)])
async def home():
    return RedirectResponse("/properties", status_code=303)

@app.get("/health")
async def root_health():
    return "ok"
