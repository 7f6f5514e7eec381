"""InfraCity API client.

A synchronous client for the InfraCity REST API built on
``requests.Session``.  It logs in with email and password, keeps the
access/refresh token pair and transparently refreshes the access token
once when a call is rejected with HTTP 401.

Every operation returns a ``(data, error)`` tuple.  On success ``data``
holds the ``data`` member of the response envelope and ``error`` is
``None``; on failure ``data`` is ``None`` and ``error`` is a dictionary
with ``status_code`` and ``message``.

High-level helpers cover the parts of the API that scripts and
dashboards use most:

* tasks: :meth:`list_tasks`, :meth:`create_task`, :meth:`update_task_status`,
  :meth:`optimize_route`;
* issues: :meth:`list_issues`, :meth:`report_issue`, :meth:`convert_issue_to_task`,
  :meth:`get_heatmap`;
* reports: :meth:`create_report`, :meth:`list_reports`, :meth:`download_report`;
* analytics: :meth:`get_neighborhood_trends`, :meth:`compare_neighborhoods`,
  :meth:`predict_property_value`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests


logger = logging.getLogger(__name__)

Result = Tuple[Optional[Any], Optional[Dict[str, Any]]]


class InfraCityClient:
    """Client for interacting with the InfraCity API."""

    def __init__(
        self,
        *,
        base_url: str,
        api_prefix: str = "/api",
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
    ) -> None:
        """Initialise the API client.

        Args:
            base_url: Server URL, e.g. ``https://infracity.example.com``.
            api_prefix: Path under which the API is mounted.
            access_token: Optional access token from an earlier login.
            refresh_token: Optional refresh token from an earlier login.
            session: Optional requests session.  If not supplied a
                session will be created automatically.
            timeout: Per-request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/") + "/" + api_prefix.strip("/")
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.session = session or requests.Session()
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Low level HTTP helpers
    # ------------------------------------------------------------------
    def _send(
        self, method: str, path: str, *, params: Dict[str, Any] | None = None, json_body: Any | None = None
    ) -> requests.Response:
        headers: Dict[str, str] = {}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        url = f"{self.base_url}{path}"
        logger.debug("Sending %s request to %s", method, url)
        return self.session.request(
            method=method,
            url=url,
            params=params,
            json=json_body,
            headers=headers,
            timeout=self.timeout,
        )

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, Any] | None = None,
        json_body: Any | None = None,
        retry_on_401: bool = True,
    ) -> Result:
        """Perform an HTTP request to the API.

        Args:
            method: HTTP method (``GET``, ``POST``, ``PATCH``, ``DELETE``, etc.).
            path: Path relative to the API prefix (e.g. ``/tasks/``).
            params: Query parameters; ``None`` values are dropped.
            json_body: JSON body to send with the request.
            retry_on_401: Refresh the access token and retry once when
                the server answers 401.
        Returns:
            A tuple ``(data, error)``.
        """
        if params:
            params = {key: value for key, value in params.items() if value is not None}
        try:
            response = self._send(method, path, params=params, json_body=json_body)
            if response.status_code == 401 and retry_on_401 and self.refresh_token:
                logger.info("Access token rejected, refreshing")
                if self.refresh():
                    response = self._send(method, path, params=params, json_body=json_body)
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            message = ""
            if exc.response is not None:
                try:
                    body = exc.response.json()
                    message = body.get("error") or body.get("detail") or str(body)
                except ValueError:
                    message = exc.response.text
            if not message:
                message = str(exc)
            logger.error("API request failed (%s): %s", status, message)
            return None, {"status_code": status, "message": message}
        except requests.RequestException as exc:
            logger.error("API request failed: %s", exc)
            return None, {"status_code": None, "message": str(exc)}

        if not response.content:
            return None, None
        body = response.json()
        if isinstance(body, dict) and "success" in body:
            return body.get("data"), None
        return body, None

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def login(self, email: str, password: str) -> Result:
        """Log in and remember the issued token pair.

        Returns:
            A tuple ``(user, error)``.
        """
        data, error = self._request(
            "POST", "/auth/login", json_body={"email": email, "password": password}, retry_on_401=False
        )
        if error:
            return None, error
        self.access_token = data["access_token"]
        self.refresh_token = data["refresh_token"]
        return data.get("user"), None

    def refresh(self) -> bool:
        """Rotate the token pair; returns ``False`` if the refresh token was rejected."""
        if not self.refresh_token:
            return False
        self.access_token = None
        data, error = self._request(
            "POST", "/auth/refresh", json_body={"refresh_token": self.refresh_token}, retry_on_401=False
        )
        if error:
            self.refresh_token = None
            return False
        self.access_token = data["access_token"]
        self.refresh_token = data["refresh_token"]
        return True

    def logout(self) -> Result:
        data, error = self._request("POST", "/auth/logout", retry_on_401=False)
        self.access_token = None
        self.refresh_token = None
        return data, error

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------
    def list_tasks(
        self,
        *,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[str] = None,
        issue_type: Optional[str] = None,
    ) -> Result:
        params = {"status": status, "priority": priority, "assigned_to": assigned_to, "issue_type": issue_type}
        return self._request("GET", "/tasks/", params=params)

    def create_task(self, payload: Dict[str, Any]) -> Result:
        return self._request("POST", "/tasks/", json_body=payload)

    def update_task_status(self, task_id: int, status: str) -> Result:
        return self._request("PUT", f"/tasks/{task_id}/status", json_body={"status": status})

    def optimize_route(self, task_ids: List[int]) -> Result:
        """Ask the server for a visiting order of the given tasks.

        Returns:
            A tuple ``(route, error)`` where ``route`` carries the
            ordered stops, ``total_distance`` and ``total_time``.
        """
        return self._request("POST", "/tasks/optimize-route", json_body={"task_ids": list(task_ids)})

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------
    def list_issues(self, *, status: Optional[str] = None, severity: Optional[str] = None) -> Result:
        return self._request("GET", "/issues/", params={"status": status, "severity": severity})

    def report_issue(self, payload: Dict[str, Any]) -> Result:
        return self._request("POST", "/issues/", json_body=payload)

    def convert_issue_to_task(self, issue_id: int, assigned_to: str, due_date: str, **overrides: Any) -> Result:
        body = {"assigned_to": assigned_to, "due_date": due_date, **overrides}
        return self._request("POST", f"/issues/{issue_id}/convert-to-task", json_body=body)

    def get_heatmap(self) -> Result:
        return self._request("GET", "/issues/heatmap")

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------
    def create_report(
        self,
        report_type: str = "comprehensive",
        *,
        title: Optional[str] = None,
        metrics: Optional[List[str]] = None,
    ) -> Result:
        """Generate a report.

        Args:
            report_type: ``comprehensive``, ``performance``, ``budget``
                or ``public``.
            title: Optional title; the server picks one by type otherwise.
            metrics: Sections to include, e.g. ``["issues", "budget"]``.
        Returns:
            A tuple ``(report, error)``.
        """
        body: Dict[str, Any] = {"type": report_type}
        if title:
            body["title"] = title
        if metrics:
            body["parameters"] = {"metrics": metrics}
        return self._request("POST", "/reports/", json_body=body)

    def list_reports(self, *, report_type: Optional[str] = None, limit: int = 50) -> Result:
        return self._request("GET", "/reports/", params={"type": report_type, "limit": limit})

    def download_report(self, report_id: int) -> Result:
        return self._request("GET", f"/reports/{report_id}/download")

    # ------------------------------------------------------------------
    # Property analytics
    # ------------------------------------------------------------------
    def get_neighborhood_trends(self, neighborhood_id: int, time_range: str = "12m") -> Result:
        return self._request(
            "GET", f"/analytics/neighborhood-trends/{neighborhood_id}", params={"time_range": time_range}
        )

    def compare_neighborhoods(self, neighborhood_ids: List[int], metrics: Optional[List[str]] = None) -> Result:
        body: Dict[str, Any] = {"neighborhood_ids": list(neighborhood_ids)}
        if metrics:
            body["metrics"] = metrics
        return self._request("POST", "/analytics/neighborhood-comparison", json_body=body)

    def predict_property_value(self, payload: Dict[str, Any]) -> Result:
        return self._request("POST", "/analytics/property-prediction", json_body=payload)
