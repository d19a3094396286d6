"""Small utility tools: weather, datetime, random, base64, hash.

``datetime``, ``random`` and ``weather`` read the clock or the random
source on every call; none of these results are cached.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import random
import uuid
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from venice_cli.tools.base import Tool
from venice_cli.types import ToolParameter, ToolResult

_CONDITIONS = ["sunny", "partly cloudy", "cloudy", "light rain", "clear"]


class WeatherTool(Tool):
    name = "weather"
    description = (
        "Get current weather information for a location. "
        "Note: This is a simulated tool for demonstration."
    )
    parameters = [
        ToolParameter(
            name="location",
            type="string",
            description='City name or location (e.g., "San Francisco, CA")',
        ),
        ToolParameter(
            name="units",
            type="string",
            description="Temperature units",
            required=False,
            enum=["celsius", "fahrenheit"],
        ),
    ]

    async def execute(self, **kwargs: Any) -> ToolResult:
        units = kwargs.get("units") or "fahrenheit"
        if units == "celsius":
            temp, symbol = round(15 + random.random() * 20), "C"
        else:
            temp, symbol = round(60 + random.random() * 30), "F"
        report = {
            "location": kwargs["location"],
            "temperature": f"{temp}°{symbol}",
            "conditions": random.choice(_CONDITIONS),
            "humidity": f"{round(40 + random.random() * 40)}%",
            "note": "This is simulated data for demonstration purposes",
        }
        return ToolResult(success=True, output=json.dumps(report, indent=2, ensure_ascii=False))


class DateTimeTool(Tool):
    name = "datetime"
    description = "Get current date and time information"
    parameters = [
        ToolParameter(
            name="timezone",
            type="string",
            description='Timezone (e.g., "America/New_York", "UTC")',
            required=False,
        ),
        ToolParameter(
            name="format",
            type="string",
            description='Output format: "full", "date", "time", or custom strftime format',
            required=False,
        ),
    ]

    async def execute(self, **kwargs: Any) -> ToolResult:
        tz_name = kwargs.get("timezone")
        fmt = kwargs.get("format") or "full"
        notice = ""
        now = datetime.now().astimezone()
        if tz_name:
            try:
                now = datetime.now(ZoneInfo(tz_name))
            except (ZoneInfoNotFoundError, ValueError):
                notice = f"Invalid timezone: {tz_name}. Using local time: "

        if fmt == "date":
            text = now.strftime("%Y-%m-%d")
        elif fmt == "time":
            text = now.strftime("%H:%M:%S %Z")
        elif fmt == "full":
            text = now.strftime("%Y-%m-%d %H:%M:%S %Z")
        else:
            text = now.strftime(fmt)
        return ToolResult(success=True, output=notice + text)


class RandomTool(Tool):
    name = "random"
    description = "Generate random numbers or make random selections"
    parameters = [
        ToolParameter(
            name="type",
            type="string",
            description="Type of random value to generate",
            enum=["number", "choice", "uuid"],
        ),
        ToolParameter(
            name="min", type="number",
            description="Minimum value (for number type)", required=False,
        ),
        ToolParameter(
            name="max", type="number",
            description="Maximum value (for number type)", required=False,
        ),
        ToolParameter(
            name="choices",
            type="array",
            description="Array of choices to pick from (for choice type)",
            required=False,
            items={"type": "string"},
        ),
    ]

    async def execute(self, **kwargs: Any) -> ToolResult:
        kind = kwargs["type"]
        if kind == "number":
            low = int(kwargs.get("min") if kwargs.get("min") is not None else 0)
            high = int(kwargs.get("max") if kwargs.get("max") is not None else 100)
            if low > high:
                return ToolResult(success=False, output="", error="min is greater than max")
            value = random.randint(low, high)
            return ToolResult(
                success=True, output=f"Random number between {low} and {high}: {value}",
            )
        if kind == "choice":
            choices = kwargs.get("choices") or []
            if not choices:
                return ToolResult(success=False, output="", error="No choices provided")
            return ToolResult(success=True, output=f"Random choice: {random.choice(choices)}")
        return ToolResult(success=True, output=f"UUID: {uuid.uuid4()}")


class Base64Tool(Tool):
    name = "base64"
    description = "Encode or decode base64 strings"
    parameters = [
        ToolParameter(
            name="action", type="string",
            description="Whether to encode or decode", enum=["encode", "decode"],
        ),
        ToolParameter(name="text", type="string", description="Text to encode or decode"),
    ]

    async def execute(self, **kwargs: Any) -> ToolResult:
        text = str(kwargs["text"])
        if kwargs["action"] == "encode":
            return ToolResult(
                success=True, output=base64.b64encode(text.encode("utf-8")).decode("ascii"),
            )
        try:
            decoded = base64.b64decode(text, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return ToolResult(success=False, output="", error="Invalid base64 string")
        return ToolResult(success=True, output=decoded)


class HashTool(Tool):
    name = "hash"
    description = "Generate hash of text"
    parameters = [
        ToolParameter(
            name="algorithm", type="string",
            description="Hash algorithm to use",
            enum=["md5", "sha1", "sha256", "sha512"],
        ),
        ToolParameter(name="text", type="string", description="Text to hash"),
    ]

    async def execute(self, **kwargs: Any) -> ToolResult:
        digest = hashlib.new(kwargs["algorithm"], str(kwargs["text"]).encode("utf-8"))
        return ToolResult(success=True, output=digest.hexdigest())
