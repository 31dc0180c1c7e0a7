from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile
from structlog import get_logger
from typing import List, Optional
from property_admin.dependencies.auth import get_console, require_session
from property_admin.exceptions import NotFound
from property_admin.schemas.property import Attachment
from property_admin.schemas.views import ActionResult, DetailViewState, FormViewState, ListViewState, Outcome
from property_admin.services.console import AdminConsole
from property_admin.viewmodels.property_form import PropertyFormViewModel

logger = get_logger()
router = APIRouter(prefix="/properties", tags=["properties"], dependencies=[Depends(require_session)])

FILTER_FIELDS = ("search", "city", "status", "min_price", "max_price", "sort", "order")
OUTCOME_STATUS = {
    Outcome.SUCCESS: 200,
    Outcome.INVALID: 422,
    Outcome.FAILED: 502,
    Outcome.REJECTED: 409,
}

def _respond(result: ActionResult, success_status: int = 200) -> JSONResponse:
    status_code = success_status if result.ok else OUTCOME_STATUS[result.outcome]
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))

async def _attachments(files: List[UploadFile]) -> List[Attachment]:
    return [
        Attachment(
            filename=f.filename or "upload",
            content=await f.read(),
            content_type=f.content_type or "application/octet-stream",
        )
        for f in files
    ]

async def _fill_form(vm: PropertyFormViewModel, request: Request) -> None:
    form = await request.form()
    files = []
    for name, value in form.multi_items():
        if isinstance(value, UploadFile):
            files.append(value)
        elif name == "_method":
            continue
        else:
            try:
                vm.set_field(name, value)
            except ValueError:
                logger.debug("Ignored unknown form field", field=name)
    if files:
        vm.attach_files(await _attachments(files))

@router.get("", response_model=ListViewState)
async def list_properties(request: Request, page: Optional[int] = None, console: AdminConsole = Depends(get_console)):
    """Property list. Filters given in the query replace the current ones; absent ones are kept."""
    vm = console.list_screen
    try:
        for field in FILTER_FIELDS:
            if field in request.query_params:
                vm.apply_filter(field, request.query_params[field])
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if page is not None:
        vm.apply_page(page)
    state = await vm.load()
    logger.info("Rendered property list", page=vm.filters.page, rows=len(state.rows))
    return state

@router.get("/create", response_model=FormViewState)
async def create_form(console: AdminConsole = Depends(get_console)):
    return console.open_form(None).view_state()

@router.post("")
async def create_property(request: Request, console: AdminConsole = Depends(get_console)):
    vm = console.open_form(None)
    await _fill_form(vm, request)
    result = await vm.submit()
    if result.ok:
        console.close_form()
    return _respond(result, success_status=201)

@router.get("/{property_id}", response_model=DetailViewState)
async def property_detail(property_id: int, console: AdminConsole = Depends(get_console)):
    state = await console.open_detail(property_id).load()
    if state.not_found:
        raise NotFound("Property not found")
    return state

@router.get("/{property_id}/edit", response_model=FormViewState)
async def edit_form(property_id: int, console: AdminConsole = Depends(get_console)):
    vm = console.open_form(property_id)
    state = await vm.load()
    if vm.not_found:
        raise NotFound("Property not found")
    return state

@router.put("/{property_id}")
async def update_property(property_id: int, request: Request, console: AdminConsole = Depends(get_console)):
    vm = console.open_form(property_id)
    await vm.load()
    if vm.not_found:
        raise NotFound("Property not found")
    await _fill_form(vm, request)
    result = await vm.submit()
    if result.ok:
        console.close_form()
    return _respond(result)

@router.delete("/{property_id}")
async def delete_property(property_id: int, console: AdminConsole = Depends(get_console)):
    result = await console.open_detail(property_id).delete()
    if result.ok:
        console.close_screens()
    return _respond(result)

@router.post("/{property_id}/restore")
async def restore_property(property_id: int, console: AdminConsole = Depends(get_console)):
    return _respond(await console.open_detail(property_id).restore())

@router.post("/{property_id}/images")
async def upload_images(property_id: int, request: Request, console: AdminConsole = Depends(get_console)):
    form = await request.form()
    files = [value for _, value in form.multi_items() if isinstance(value, UploadFile)]
    result = await console.open_detail(property_id).upload_images(await _attachments(files))
    return _respond(result, success_status=201)

@router.delete("/{property_id}/images/{image_id}")
async def delete_image(property_id: int, image_id: int, console: AdminConsole = Depends(get_console)):
    return _respond(await console.open_detail(property_id).delete_image(image_id))
