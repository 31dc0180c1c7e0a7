import asyncio
import httpx
import pytest
from property_admin.schemas.property import Attachment
from property_admin.schemas.views import Outcome
from property_admin.services.cache import property_detail_key, property_list_key
from property_admin.viewmodels.property_form import coerce_number, parse_features, validate_draft
from conftest import form_fields, property_payload

def fill_required(vm):
    vm.set_field("title", "Sunny flat")
    vm.set_field("address", "5 Hang Bai")
    vm.set_field("city", "Hanoi")
    vm.set_field("district", "Hoan Kiem")
    vm.set_field("contact_name", "Huong")
    vm.set_field("contact_phone", "0988")

def test_features_text_is_split_trimmed_and_filtered():
    assert parse_features("Pool, Gym,  Garden ,") == ["Pool", "Gym", "Garden"]
    assert parse_features("") == []
    assert parse_features(" , ,") == []

def test_numeric_coercion():
    assert coerce_number("") == 0
    assert coerce_number("   ") == 0
    assert coerce_number(None) == 0
    assert coerce_number("42") == 42
    assert coerce_number("10.5") == 10.5
    with pytest.raises(ValueError):
        coerce_number("ten")

@pytest.mark.parametrize("value", ["nan", "inf", "-Infinity", float("nan"), float("inf")])
def test_numeric_coercion_rejects_non_finite(value):
    with pytest.raises(ValueError):
        coerce_number(value)

def test_create_defaults(make_console):
    console, _ = make_console(lambda request: httpx.Response(500))
    state = console.open_form().view_state()

    assert state.mode == "create"
    assert state.can_submit
    assert not state.loading
    assert state.draft.property_type == "apartment"
    assert state.draft.status == "available"
    assert state.draft.floors == 1
    assert state.draft.features == []

def test_set_field_keeps_features_in_sync(make_console):
    console, _ = make_console(lambda request: httpx.Response(500))
    vm = console.open_form()

    vm.set_field("features", "Pool, Gym,  Garden ,")
    vm.set_field("bedrooms", "3")
    vm.set_field("price", "not a price")

    assert vm.draft.features == ["Pool", "Gym", "Garden"]
    assert vm.features_text == "Pool, Gym,  Garden ,"
    assert vm.draft.bedrooms == 3
    assert vm.draft.price == 0
    assert vm.field_error("price") == "The value must be a number."
    with pytest.raises(ValueError):
        vm.set_field("id", 5)

def test_client_validation_lists_missing_fields(make_console):
    console, _ = make_console(lambda request: httpx.Response(500))
    vm = console.open_form()
    vm.set_field("property_type", "castle")

    errors = validate_draft(vm.draft)

    assert set(errors) == {"title", "address", "city", "district", "contact_name", "contact_phone", "property_type"}

@pytest.mark.asyncio
async def test_invalid_draft_is_not_sent(make_console):
    console, recorder = make_console(lambda request: httpx.Response(201, json={"data": property_payload(1)}))
    vm = console.open_form()

    result = await vm.submit()

    assert result.outcome is Outcome.INVALID
    assert "title" in result.errors
    assert recorder.requests == []

@pytest.mark.asyncio
async def test_bad_number_blocks_submit_until_corrected(make_console):
    console, recorder = make_console(lambda request: httpx.Response(201, json={"data": property_payload(1)}))
    vm = console.open_form()
    fill_required(vm)
    vm.set_field("price", "100")
    vm.set_field("price", "abc")
    vm.set_field("area", "inf")

    result = await vm.submit()

    assert result.outcome is Outcome.INVALID
    assert result.errors["price"] == ["The value must be a number."]
    assert vm.field_error("area") == "The value must be a number."
    assert vm.draft.price == 100
    assert recorder.requests == []

    vm.set_field("price", "250")
    vm.set_field("area", "80")
    result = await vm.submit()

    assert result.ok
    assert vm.field_error("price") is None
    assert form_fields(recorder.requests[0])["price"] == "250"

@pytest.mark.asyncio
async def test_server_field_errors_are_shown_and_values_kept(make_console):
    console, recorder = make_console(
        lambda request: httpx.Response(422, json={"message": "The given data was invalid.", "errors": {"price": ["must be greater than 0"]}})
    )
    vm = console.open_form()
    fill_required(vm)
    vm.set_field("price", "")
    vm.set_field("features", "Balcony")

    result = await vm.submit()

    assert form_fields(recorder.requests[0])["price"] == "0"
    assert result.outcome is Outcome.INVALID
    assert result.redirect_to is None
    assert vm.field_error("price") == "must be greater than 0"
    assert vm.view_state().field_errors == {"price": "must be greater than 0"}
    assert vm.draft.title == "Sunny flat"
    assert vm.draft.contact_phone == "0988"
    assert vm.features_text == "Balcony"
    assert vm.can_submit

@pytest.mark.asyncio
async def test_create_success_invalidates_lists_and_redirects(make_console):
    console, recorder = make_console(lambda request: httpx.Response(201, json={"data": property_payload(21)}))

    async def loader():
        return "cached page"

    list_key = property_list_key({"page": "1"})
    await console.cache.fetch(list_key, loader)
    vm = console.open_form()
    fill_required(vm)
    vm.attach_files([Attachment(filename="front.jpg", content=b"img", content_type="image/jpeg")])

    result = await vm.submit()

    assert result.ok
    assert result.redirect_to == "/properties"
    assert result.item.id == 21
    assert console.cache.peek(list_key).stale
    assert vm.previews == []
    assert b'filename="front.jpg"' in recorder.requests[0].content

@pytest.mark.asyncio
async def test_edit_waits_for_hydration(make_console):
    release = asyncio.Event()

    async def handler(request):
        await release.wait()
        return httpx.Response(200, json={"data": property_payload(7)})

    console, _ = make_console(handler)
    vm = console.open_form(7)
    loading = asyncio.ensure_future(vm.load())
    await asyncio.sleep(0)

    assert vm.view_state().loading
    assert not vm.can_submit
    assert (await vm.submit()).outcome is Outcome.REJECTED

    release.set()
    state = await loading
    assert not state.loading
    assert state.draft.title == "Property 7"
    assert state.features_text == "Pool, Gym"
    assert vm.can_submit

@pytest.mark.asyncio
async def test_edit_sends_full_draft(make_console):
    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json={"data": property_payload(7)})
        return httpx.Response(200, json={"data": property_payload(7, status="sold")})

    console, recorder = make_console(handler)
    vm = console.open_form(7)
    await vm.load()
    vm.set_field("status", "sold")

    result = await vm.submit()

    update = recorder.calls("POST", "/api/properties/7")[0]
    fields = form_fields(update)
    assert fields["_method"] == "PUT"
    assert fields["status"] == "sold"
    assert fields["address"] == "12 Nguyen Hue"
    assert fields["contact_name"] == "Lan"
    assert fields["contact_email"] == "lan@example.com"
    assert fields["features[0]"] == "Pool"
    assert fields["features[1]"] == "Gym"
    assert result.redirect_to == "/properties/7"
    assert console.cache.peek(property_detail_key(7)).stale

@pytest.mark.asyncio
async def test_second_submit_is_refused_while_first_in_flight(make_console):
    release = asyncio.Event()

    async def handler(request):
        await release.wait()
        return httpx.Response(201, json={"data": property_payload(3)})

    console, recorder = make_console(handler)
    vm = console.open_form()
    fill_required(vm)

    first = asyncio.ensure_future(vm.submit())
    await asyncio.sleep(0)
    assert vm.submitting
    second = await vm.submit()
    release.set()

    assert second.outcome is Outcome.REJECTED
    assert (await first).ok
    assert len(recorder.requests) == 1

@pytest.mark.asyncio
async def test_transport_failure_keeps_form_open(make_console):
    console, _ = make_console(lambda request: httpx.Response(500, json={"message": "Server exploded"}))
    vm = console.open_form()
    fill_required(vm)

    result = await vm.submit()

    assert result.outcome is Outcome.FAILED
    assert vm.view_state().error == "Server exploded"
    assert vm.can_submit

def test_attaching_files_replaces_previews(make_console):
    console, _ = make_console(lambda request: httpx.Response(500))
    vm = console.open_form()

    first = vm.attach_files([Attachment(filename="a.jpg", content=b"a"), Attachment(filename="b.jpg", content=b"b")])
    second = vm.attach_files([Attachment(filename="c.jpg", content=b"c")])

    assert len(first) == 2
    assert len(set(first)) == 2
    assert vm.previews == second
    assert not set(first) & set(second)
    assert [a.filename for a in vm.attachments] == ["c.jpg"]

    vm.close()
    assert vm.previews == []
    assert not vm.can_submit
