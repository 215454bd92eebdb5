"""JSON output formatter for CLI."""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from typing import Any


class JsonFormatter:
    """Generic JSON formatter for CLI output."""

    def format(self, data: Any) -> str:
        """Format data as JSON.

        Args:
            data: Data to format

        Returns:
            JSON string
        """
        return json.dumps(self._to_jsonable(data), default=str, indent=2)

    def format_success(self, message: str, data: Any = None) -> str:
        """Format a success response.

        Args:
            message: Success message
            data: Optional additional data

        Returns:
            JSON string
        """
        response: dict[str, Any] = {"success": True, "message": message}
        if data is not None:
            response["data"] = self._to_jsonable(data)
        return json.dumps(response, default=str, indent=2)

    def format_error_response(self, error: str | Exception, code: int = 1) -> str:
        """Format an error response.

        Args:
            error: Error message or exception
            code: Error code

        Returns:
            JSON string
        """
        error_msg = str(error) if isinstance(error, Exception) else error
        response = {"success": False, "error": error_msg, "code": code}
        return json.dumps(response, indent=2)

    def _to_jsonable(self, data: Any) -> Any:
        if hasattr(data, "to_dict"):
            return data.to_dict()
        if hasattr(data, "model_dump"):
            return data.model_dump(mode="json")
        if is_dataclass(data) and not isinstance(data, type):
            return asdict(data)
        if isinstance(data, dict):
            return {key: self._to_jsonable(value) for key, value in data.items()}
        if isinstance(data, list | tuple):
            return [self._to_jsonable(item) for item in data]
        return data
