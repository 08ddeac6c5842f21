from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Thin synchronous client for the irrigation monitor HTTP API."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_status(self) -> Dict[str, Any]:
        return self._request("GET", "/dashboard/status")

    def reload(self) -> Dict[str, Any]:
        return self._request("POST", "/dashboard/reload")

    def get_current(self) -> Dict[str, Any]:
        return self._request("GET", "/dashboard/current")

    def get_history(
        self,
        month: Optional[str] = None,
        week: Optional[str] = None,
        day: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {
            key: value
            for key, value in (("month", month), ("week", week), ("day", day))
            if value
        }
        return self._request("GET", "/history", params=params)

    def get_settings(self) -> Dict[str, Any]:
        return self._request("GET", "/settings")

    def list_profiles(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/crop-profiles")

    def apply_profile(self, crop_id: str) -> Dict[str, Any]:
        try:
            response = self._client.post(f"/settings/crop-profile/{crop_id}")
            if response.status_code == 404:
                raise typer.BadParameter(f"Crop profile {crop_id} was not found.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.RequestError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Any = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        if isinstance(detail, list):
            detail = "; ".join(str(item) for item in detail)
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
