"""Tests for the Tool base class and ToolRegistry."""

from typing import Any

import pytest

from tally.errors import ToolExecutionError, ToolNotFoundError
from tally.tools import Tool, ToolRegistry, ToolResult, ToolSpec


class LookupInvoiceTool(Tool):
    """Fake read tool with a required string and an optional integer."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "get_invoice"

    @property
    def description(self) -> str:
        return "Look up an invoice"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "number": {"type": "string"},
                "year": {"type": "integer"},
                "lines": {"type": "array"},
                "paid": {"type": "boolean"},
                "total": {"type": "number"},
            },
            "required": ["number"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        self.calls.append(kwargs)
        return ToolResult(success=True, result=f"Invoice {kwargs['number']}")


class BrokenTool(LookupInvoiceTool):
    @property
    def name(self) -> str:
        return "broken"

    async def execute(self, **kwargs: Any) -> ToolResult:
        raise RuntimeError("database locked")


class TestToolResult:
    """Tests for ToolResult."""

    def test_failure_sets_result_and_error(self):
        result = ToolResult.failure("nope")
        assert result.success is False
        assert result.result == "nope"
        assert result.error == "nope"


class TestValidateArgs:
    """Tests for Tool.validate_args."""

    def test_valid(self):
        assert LookupInvoiceTool().validate_args({"number": "INV-1", "year": 2025}) == (True, None)

    def test_missing_required(self):
        valid, error = LookupInvoiceTool().validate_args({})
        assert not valid
        assert error == "Missing required argument: number"

    @pytest.mark.parametrize(
        "args",
        [
            {"number": 42},
            {"number": "INV-1", "year": "2025"},
            {"number": "INV-1", "year": True},
            {"number": "INV-1", "lines": "a,b"},
            {"number": "INV-1", "paid": "yes"},
            {"number": "INV-1", "total": False},
        ],
    )
    def test_wrong_types(self, args):
        valid, error = LookupInvoiceTool().validate_args(args)
        assert not valid
        assert error.startswith("Argument")

    def test_unknown_keys_pass(self):
        assert LookupInvoiceTool().validate_args({"number": "INV-1", "extra": 1})[0]


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_register_and_get(self):
        registry = ToolRegistry()
        tool = LookupInvoiceTool()
        registry.register(tool)

        assert registry.get("get_invoice") is tool
        assert registry.has("get_invoice")
        assert registry.list_tools() == ["get_invoice"]

    def test_duplicate_rejected(self):
        registry = ToolRegistry()
        registry.register(LookupInvoiceTool())
        with pytest.raises(ValueError):
            registry.register(LookupInvoiceTool())

    def test_unregister(self):
        registry = ToolRegistry()
        registry.register(LookupInvoiceTool())
        registry.unregister("get_invoice")
        registry.unregister("get_invoice")
        assert not registry.has("get_invoice")

    def test_get_unknown_raises(self):
        with pytest.raises(ToolNotFoundError) as exc_info:
            ToolRegistry().get("void_invoice")
        assert exc_info.value.tool_name == "void_invoice"
        assert str(exc_info.value) == "Unknown tool: void_invoice"

    def test_list_specs_and_schema(self):
        registry = ToolRegistry()
        registry.register(LookupInvoiceTool())

        (spec,) = registry.list()
        assert isinstance(spec, ToolSpec)
        assert spec.name == "get_invoice"

        (schema,) = registry.get_tools_schema()
        assert schema["type"] == "function"
        assert schema["function"]["name"] == "get_invoice"
        assert schema["function"]["parameters"]["required"] == ["number"]

    @pytest.mark.asyncio
    async def test_execute(self):
        registry = ToolRegistry()
        tool = LookupInvoiceTool()
        registry.register(tool)

        result = await registry.execute("get_invoice", {"number": "INV-7"})

        assert result.success
        assert result.result == "Invoice INV-7"
        assert tool.calls == [{"number": "INV-7"}]

    @pytest.mark.asyncio
    async def test_execute_invalid_args_is_failed_result(self):
        registry = ToolRegistry()
        tool = LookupInvoiceTool()
        registry.register(tool)

        result = await registry.execute("get_invoice", {})

        assert not result.success
        assert "Missing required argument" in result.error
        assert tool.calls == []

    @pytest.mark.asyncio
    async def test_execute_unknown_raises(self):
        with pytest.raises(ToolNotFoundError):
            await ToolRegistry().execute("nope", {})

    @pytest.mark.asyncio
    async def test_execute_wraps_tool_exception(self):
        registry = ToolRegistry()
        registry.register(BrokenTool())

        with pytest.raises(ToolExecutionError) as exc_info:
            await registry.execute("broken", {"number": "1"})

        assert exc_info.value.tool_name == "broken"
        assert "database locked" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
