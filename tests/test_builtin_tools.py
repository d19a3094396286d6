"""Tests for the utility built-in tools."""

from __future__ import annotations

import json
import re
import uuid

import pytest

from venice_cli.tools.builtin.utility import (
    Base64Tool,
    DateTimeTool,
    HashTool,
    RandomTool,
    WeatherTool,
)
from venice_cli.tools.registry import ToolRegistry, default_registry

ABC_SHA256 = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


class TestHashTool:
    @pytest.mark.asyncio
    async def test_sha256_abc(self):
        tool = HashTool()
        first = await tool.execute(algorithm="sha256", text="abc")
        second = await tool.execute(algorithm="sha256", text="abc")
        assert first.output == ABC_SHA256
        assert second.output == ABC_SHA256

    @pytest.mark.asyncio
    async def test_md5(self):
        result = await HashTool().execute(algorithm="md5", text="abc")
        assert result.output == "900150983cd24fb0d6963f7d28e17f72"

    @pytest.mark.asyncio
    async def test_unknown_algorithm_via_dispatch(self):
        registry = ToolRegistry()
        registry.register(HashTool())
        text = await registry.dispatch("hash", '{"algorithm": "crc32", "text": "abc"}')
        assert text.startswith("Tool error: invalid value for 'algorithm'")


class TestBase64Tool:
    @pytest.mark.asyncio
    async def test_encode(self):
        result = await Base64Tool().execute(action="encode", text="hello")
        assert result.output == "aGVsbG8="

    @pytest.mark.asyncio
    async def test_decode(self):
        result = await Base64Tool().execute(action="decode", text="aGVsbG8=")
        assert result.output == "hello"

    @pytest.mark.asyncio
    async def test_decode_invalid(self):
        result = await Base64Tool().execute(action="decode", text="not base64!")
        assert not result.success
        assert result.to_message() == "Tool error: Invalid base64 string"


class TestRandomTool:
    @pytest.mark.asyncio
    async def test_number_in_range(self):
        result = await RandomTool().execute(type="number", min=3, max=3)
        assert result.output == "Random number between 3 and 3: 3"

    @pytest.mark.asyncio
    async def test_choice(self):
        result = await RandomTool().execute(type="choice", choices=["only"])
        assert result.output == "Random choice: only"

    @pytest.mark.asyncio
    async def test_choice_without_choices(self):
        result = await RandomTool().execute(type="choice")
        assert not result.success

    @pytest.mark.asyncio
    async def test_uuid(self):
        result = await RandomTool().execute(type="uuid")
        uuid.UUID(result.output.removeprefix("UUID: "))

    @pytest.mark.asyncio
    async def test_min_above_max(self):
        result = await RandomTool().execute(type="number", min=5, max=1)
        assert not result.success


class TestDateTimeTool:
    @pytest.mark.asyncio
    async def test_date_format(self):
        result = await DateTimeTool().execute(timezone="UTC", format="date")
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", result.output)

    @pytest.mark.asyncio
    async def test_custom_format(self):
        result = await DateTimeTool().execute(timezone="UTC", format="%Y")
        assert re.fullmatch(r"\d{4}", result.output)

    @pytest.mark.asyncio
    async def test_invalid_timezone_falls_back(self):
        result = await DateTimeTool().execute(timezone="Mars/Olympus", format="date")
        assert result.success
        assert result.output.startswith("Invalid timezone: Mars/Olympus. Using local time: ")


class TestWeatherTool:
    @pytest.mark.asyncio
    async def test_simulated_report(self):
        result = await WeatherTool().execute(location="Paris", units="celsius")
        data = json.loads(result.output)
        assert data["location"] == "Paris"
        assert data["temperature"].endswith("°C")
        assert "simulated" in data["note"]


class TestDefaultRegistry:
    def test_builtins_registered_and_frozen(self):
        registry = default_registry()
        assert set(registry.tool_names()) == {
            "calculator", "weather", "datetime", "random", "base64", "hash",
        }
        assert default_registry() is registry
