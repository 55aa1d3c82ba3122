"""
Tests for the tool-call dispatcher: routing, argument validation, error
normalization and the shutdown gate.
"""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.kanta.schemas import IdArgs, NoArgs
from src.mcp.dispatcher import Dispatcher
from src.mcp.errors import (
    ErrorCode,
    ExecutionError,
    ForbiddenError,
    NotFoundError,
    ParameterError,
    RequestTimeoutError,
    UnauthorizedError,
    UnavailableError,
    UnknownOperationError,
    UpstreamValidationError,
)
from src.tools import DEFAULT_GROUPS, ToolGroup, customer_tools, firm_tools

from conftest import (
    CUSTOMER_ID,
    USER_ID,
    customer_payload,
    envelope,
    list_envelope,
    risk_summary_payload,
    run,
    user_payload,
)


EXPECTED_TOOLS = {
    "get_customers",
    "get_customer",
    "create_customer",
    "update_customer",
    "search_customers",
    "assign_customers",
    "get_customer_risk_summary",
    "get_users",
    "get_user",
    "create_user",
    "delete_user",
    "get_persons",
    "get_person",
    "get_firms",
    "get_structure",
}


@pytest.fixture
def dispatcher(client):
    return Dispatcher(client)


class TestRegistry:
    """The exact-name registry built at startup."""

    def test_all_tools_registered(self, dispatcher):
        names = [tool.name for tool in dispatcher.list_tools()]

        assert set(names) == EXPECTED_TOOLS
        assert len(names) == len(EXPECTED_TOOLS)

    def test_routes_to_owning_group(self, dispatcher):
        assert dispatcher.route("get_customer").group is customer_tools
        assert dispatcher.route("get_customer_risk_summary").group is customer_tools
        assert dispatcher.route("get_firms").group is firm_tools
        assert dispatcher.route("get_structure").group.name == "structure"

    @pytest.mark.parametrize("name", ["foo_bar", "get_customer_risk", "get_customers_all", "GET_CUSTOMER", ""])
    def test_unknown_names(self, dispatcher, name):
        with pytest.raises(UnknownOperationError):
            dispatcher.route(name)

    def test_duplicate_name_across_groups(self, client):
        first = ToolGroup("first", "First group")
        second = ToolGroup("second", "Second group")

        @first.tool("get_thing", "Get a thing")
        async def get_thing(client, args):
            return {}

        @second.tool("get_thing", "Get a thing again")
        async def get_thing_again(client, args):
            return {}

        with pytest.raises(ValueError, match="get_thing"):
            Dispatcher(client, groups=[first, second])

    def test_duplicate_name_within_group(self):
        group = ToolGroup("group", "Group")

        @group.tool("get_thing", "Get a thing")
        async def get_thing(client, args):
            return {}

        with pytest.raises(ValueError):
            group.tool("get_thing", "Again")(get_thing)

    def test_default_groups_order(self):
        assert [group.name for group in DEFAULT_GROUPS] == ["customer", "user", "person", "firm", "structure"]

    def test_every_tool_advertises_an_object_schema(self, dispatcher):
        for tool in dispatcher.list_tools():
            mcp_tool = tool.to_mcp_tool()
            assert mcp_tool.inputSchema["type"] == "object"
            assert "properties" in mcp_tool.inputSchema
            assert mcp_tool.description

    def test_id_tools_require_id(self, dispatcher):
        schema = dispatcher.route("get_customer").tool.input_schema()
        assert schema["required"] == ["id"]


class TestDispatch:
    """Successful calls."""

    def test_get_customer(self, stub, dispatcher):
        stub.add("GET", f"/customers/{CUSTOMER_ID}", envelope(customer_payload()))

        result = run(dispatcher.call("get_customer", {"id": CUSTOMER_ID}))

        assert result["id"] == CUSTOMER_ID
        assert result["vigilance_level"] == "enhanced"
        assert result["risk_summary"]["customer"] == "high"
        assert stub.paths == [f"/customers/{CUSTOMER_ID}"]

    def test_get_customers_returns_page(self, stub, dispatcher):
        stub.add("GET", "/customers", list_envelope([customer_payload()], total_data=1))

        result = run(dispatcher.call("get_customers", {}))

        assert result["total_data"] == 1
        assert result["data"][0]["company_name"] == "Boulangerie Martin"

    def test_missing_arguments_are_treated_as_empty(self, stub, dispatcher):
        stub.add("GET", "/customers", list_envelope([]))

        result = run(dispatcher.call("get_customers", None))

        assert result["data"] == []

    def test_risk_summary(self, stub, dispatcher):
        stub.add("GET", f"/customers/{CUSTOMER_ID}/risk-summary", envelope(risk_summary_payload()))

        result = run(dispatcher.call("get_customer_risk_summary", {"id": CUSTOMER_ID}))

        assert result["customer"] == "standard"

    def test_risk_summary_tokens_are_normalized(self, stub, dispatcher):
        stub.add(
            "GET",
            f"/customers/{CUSTOMER_ID}/risk-summary",
            envelope(risk_summary_payload(customer="High", location="Enhanced", activity="LOW")),
        )

        result = run(dispatcher.call("get_customer_risk_summary", {"id": CUSTOMER_ID}))

        assert result == {"location": "enhanced", "activity": "low", "mission": "low", "customer": "high"}

    def test_user_with_internal_domain_email(self, stub, dispatcher):
        stub.add("GET", f"/users/{USER_ID}", envelope(user_payload(email="anne@cabinet.local")))

        result = run(dispatcher.call("get_user", {"id": USER_ID}))

        assert result["email"] == "anne@cabinet.local"

    def test_customer_email_is_returned_as_received(self, stub, dispatcher):
        payload = customer_payload(email="Contact@Boulangerie-Martin.FR")
        payload["affectation_list"][0]["email"] = "anne@cabinet.local"
        stub.add("GET", f"/customers/{CUSTOMER_ID}", envelope(payload))

        result = run(dispatcher.call("get_customer", {"id": CUSTOMER_ID}))

        assert result["email"] == "Contact@Boulangerie-Martin.FR"
        assert result["affectation_list"][0]["email"] == "anne@cabinet.local"

    def test_assignment_returns_customers(self, stub, dispatcher):
        stub.add("POST", "/customers/assignment", envelope([customer_payload()]))

        result = run(dispatcher.call("assign_customers", {"customers": [CUSTOMER_ID], "supervisor": USER_ID}))

        assert [customer["id"] for customer in result] == [CUSTOMER_ID]
        assert result[0]["vigilance_level"] == "enhanced"

    def test_assignment_omitted_vs_unassign(self, stub, dispatcher):
        stub.add("POST", "/customers/assignment", envelope([customer_payload()]))

        run(dispatcher.call("assign_customers", {"customers": [CUSTOMER_ID], "contributors": []}))

        body = stub.last_json()
        assert "supervisor" not in body
        assert "firm" not in body
        assert body["contributors"] == []

    def test_assignment_explicit_null_unassigns(self, stub, dispatcher):
        stub.add("POST", "/customers/assignment", envelope([customer_payload()]))

        run(dispatcher.call("assign_customers", {"customers": [CUSTOMER_ID], "supervisor": None}))

        assert stub.last_json() == {"customers": [CUSTOMER_ID], "supervisor": None}

    def test_update_customer_sends_id_in_path_only(self, stub, dispatcher):
        stub.add("PUT", f"/customers/{CUSTOMER_ID}", envelope(customer_payload(code="C777")))

        result = run(dispatcher.call("update_customer", {"id": CUSTOMER_ID, "code": "C777"}))

        assert result["code"] == "C777"
        assert stub.last_json() == {"code": "C777"}


class TestArgumentValidation:
    """Invalid arguments fail before any network call."""

    @pytest.mark.parametrize("name, arguments", [
        ("get_customers", {"per_page": 0}),
        ("get_customers", {"per_page": 101}),
        ("get_users", {"page": 0}),
        ("get_customer", {"id": "not-a-uuid"}),
        ("get_customer", {}),
        ("create_customer", {}),
        ("search_customers", {}),
        ("assign_customers", {"customers": []}),
        ("create_user", {"firstname": "Paul", "lastname": "Leroy", "email": "nope", "role": "controller"}),
        ("get_structure", {"unexpected": True}),
    ])
    def test_invalid_arguments(self, stub, dispatcher, name, arguments):
        with pytest.raises(ParameterError) as exc_info:
            run(dispatcher.call(name, arguments))

        assert exc_info.value.code == ErrorCode.INVALID_PARAMS
        assert exc_info.value.details["fields"]
        assert stub.requests == []

    def test_error_lists_offending_field(self, dispatcher):
        with pytest.raises(ParameterError) as exc_info:
            run(dispatcher.call("get_customers", {"per_page": 500}))

        assert "per_page" in exc_info.value.message
        assert str(exc_info.value).startswith("[INVALID_PARAMS]")


class TestErrorNormalization:
    """Upstream failures map onto the protocol error taxonomy."""

    @pytest.mark.parametrize("status, error_class, rpc_code", [
        (400, ParameterError, -32602),
        (401, UnauthorizedError, -32001),
        (403, ForbiddenError, -32003),
        (404, NotFoundError, -32004),
        (500, ExecutionError, -32603),
        (502, ExecutionError, -32603),
    ])
    def test_status_mapping(self, stub, dispatcher, status, error_class, rpc_code):
        stub.add("GET", f"/customers/{CUSTOMER_ID}", {"message": "upstream says no"}, status=status)

        with pytest.raises(error_class) as exc_info:
            run(dispatcher.call("get_customer", {"id": CUSTOMER_ID}))

        assert exc_info.value.error.code == rpc_code
        assert exc_info.value.details["status"] == status

    def test_unknown_tool(self, stub, dispatcher):
        with pytest.raises(UnknownOperationError) as exc_info:
            run(dispatcher.call("foo_bar", {}))

        assert exc_info.value.code == ErrorCode.UNKNOWN_OPERATION
        assert stub.requests == []

    def test_timeout(self, stub, dispatcher):
        import httpx

        def timeout(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        stub.add("GET", "/structure", handler=timeout)

        with pytest.raises(RequestTimeoutError) as exc_info:
            run(dispatcher.call("get_structure", {}))

        assert exc_info.value.code == ErrorCode.TIMEOUT

    def test_malformed_upstream_body(self, stub, dispatcher):
        stub.add("GET", f"/customers/{CUSTOMER_ID}", envelope(customer_payload(state="archived")))

        with pytest.raises(UpstreamValidationError) as exc_info:
            run(dispatcher.call("get_customer", {"id": CUSTOMER_ID}))

        assert any("state" in field for field in exc_info.value.details["fields"])

    def test_malformed_assignment_answer(self, stub, dispatcher):
        stub.add("POST", "/customers/assignment", envelope([{"garbage": True}]))

        with pytest.raises(UpstreamValidationError) as exc_info:
            run(dispatcher.call("assign_customers", {"customers": [CUSTOMER_ID], "supervisor": USER_ID}))

        assert exc_info.value.code == ErrorCode.UPSTREAM_VALIDATION

    def test_malformed_risk_summary_answer(self, stub, dispatcher):
        stub.add("GET", f"/customers/{CUSTOMER_ID}/risk-summary", envelope({"customer": "catastrophic"}))

        with pytest.raises(UpstreamValidationError):
            run(dispatcher.call("get_customer_risk_summary", {"id": CUSTOMER_ID}))

    def test_unexpected_handler_failure(self, client):
        group = ToolGroup("broken", "Broken group")

        @group.tool("explode", "Always fails", NoArgs)
        async def explode(client, args):
            raise RuntimeError("boom")

        dispatcher = Dispatcher(client, groups=[group])

        with pytest.raises(ExecutionError, match="boom"):
            run(dispatcher.call("explode", {}))

    def test_to_dict(self, stub, dispatcher):
        stub.add("GET", f"/users/{USER_ID}", {"message": "gone"}, status=404)

        with pytest.raises(NotFoundError) as exc_info:
            run(dispatcher.call("get_user", {"id": USER_ID}))

        error = exc_info.value.to_dict()
        assert error["code"] == "NOT_FOUND"
        assert error["details"]["status"] == 404


class TestShutdown:

    def test_calls_rejected_after_shutdown(self, stub, dispatcher):
        stub.add("GET", "/structure", envelope({}))
        dispatcher.shutdown()

        with pytest.raises(UnavailableError) as exc_info:
            run(dispatcher.call("get_structure", {}))

        assert dispatcher.is_closing
        assert exc_info.value.error.code == -32000
        assert stub.requests == []

    def test_unknown_tool_after_shutdown_is_unavailable(self, dispatcher):
        dispatcher.shutdown()

        with pytest.raises(UnavailableError):
            run(dispatcher.call("foo_bar", {}))

    def test_handler_receives_validated_arguments(self, client):
        received = []
        group = ToolGroup("recorder", "Recorder group")

        @group.tool("record", "Record the arguments", IdArgs)
        async def record(client, args):
            received.append(args)
            return {"ok": True}

        dispatcher = Dispatcher(client, groups=[group])
        result = run(dispatcher.call("record", {"id": CUSTOMER_ID}))

        assert result == {"ok": True}
        assert isinstance(received[0], IdArgs)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
