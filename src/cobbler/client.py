"""HTTP client for the Cobbler API and a background list poller.

Every call goes through `ApiClient._request`, which applies the configured
timeout and unwraps the `{"success": ..., "data": ...}` envelope. Anything
other than a successful envelope raises `NetworkError`; there are no retries.
"""
from __future__ import annotations

import logging
import os
import threading
from datetime import date
from typing import Any, Callable, Mapping, Optional

import requests

from .config import AppConfig
from .errors import NetworkError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
BOARDS = ("pickup", "service", "delivery")
REPORTS = ("data", "metrics", "revenue-chart", "export-data")
SETTINGS = ("business", "security", "notifications")


class ApiClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"X-Token": token, "Accept": "application/json"})

    @classmethod
    def from_config(cls, cfg: AppConfig, session: Optional[requests.Session] = None) -> "ApiClient":
        return cls(cfg.client.base_url, cfg.api_token, timeout=cfg.client.timeout, session=session)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise NetworkError(f"{method} {url} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            raise NetworkError(f"{method} {url} returned HTTP {resp.status_code} without a JSON envelope", resp.status_code)

        if resp.status_code >= 400 or not body.get("success"):
            message = body.get("message") or body.get("error") or f"HTTP {resp.status_code}"
            raise NetworkError(message, resp.status_code, body.get("fields"))
        return body.get("data")

    def health(self) -> dict:
        return self._request("GET", "/health")

    # enquiries

    def list_enquiries(self, *, stage: str | None = None, status: str | None = None, search: str | None = None) -> list:
        params = {k: v for k, v in {"stage": stage, "status": status, "search": search}.items() if v}
        return self._request("GET", "/enquiries", params=params)

    def get_enquiry(self, enquiry_id: int) -> dict:
        return self._request("GET", f"/enquiries/{enquiry_id}")

    def create_enquiry(self, payload: Mapping[str, Any]) -> dict:
        return self._request("POST", "/enquiries", json=dict(payload))

    def update_enquiry(self, enquiry_id: int, payload: Mapping[str, Any]) -> dict:
        return self._request("PUT", f"/enquiries/{enquiry_id}", json=dict(payload))

    def delete_enquiry(self, enquiry_id: int) -> None:
        self._request("DELETE", f"/enquiries/{enquiry_id}")

    def enquiry_stats(self) -> dict:
        return self._request("GET", "/enquiries/stats")

    def convert(self, enquiry_id: int, quoted_amount: Any, pickup_date: date | str, delivery_date: date | str) -> dict:
        payload = {
            "quotedAmount": str(quoted_amount),
            "pickupDate": str(pickup_date),
            "deliveryDate": str(delivery_date),
        }
        return self._request("POST", f"/enquiries/{enquiry_id}/convert", json=payload)

    def transition(self, enquiry_id: int, action: str, **payload: Any) -> dict:
        return self._request("POST", f"/enquiries/{enquiry_id}/transitions", json={"action": action, **payload})

    def generate_bill(
        self, enquiry_id: int, items: list[dict], *, gst_included: bool = True, notes: str | None = None
    ) -> dict:
        return self.transition(enquiry_id, "generate-bill", items=items, gstIncluded=gst_included, notes=notes)

    def dashboard(self) -> dict:
        return self._request("GET", "/dashboard")

    # stage boards

    def board(self, name: str) -> list:
        if name not in BOARDS:
            raise ValueError(f"Unknown board '{name}'")
        return self._request("GET", f"/{name}")

    def board_stats(self, name: str) -> dict:
        if name not in BOARDS:
            raise ValueError(f"Unknown board '{name}'")
        return self._request("GET", f"/{name}/stats")

    # expenses and employees

    def list_expenses(self, **filters: Any) -> dict:
        params = {k: v for k, v in filters.items() if v not in (None, "")}
        return self._request("GET", "/expense", params=params)

    def create_expense(self, payload: Mapping[str, Any], bill_path: str | None = None) -> dict:
        if bill_path is None:
            return self._request("POST", "/expense", json=dict(payload))
        with open(bill_path, "rb") as fh:
            files = {"bill": (os.path.basename(bill_path), fh)}
            data = {k: str(v) for k, v in payload.items() if v is not None}
            return self._request("POST", "/expense", data=data, files=files)

    def update_expense(self, expense_id: int, payload: Mapping[str, Any]) -> dict:
        return self._request("PUT", f"/expense/{expense_id}", json=dict(payload))

    def delete_expense(self, expense_id: int) -> None:
        self._request("DELETE", f"/expense/{expense_id}")

    def expense_stats(self, **filters: Any) -> dict:
        params = {k: v for k, v in filters.items() if v not in (None, "")}
        return self._request("GET", "/expense/stats", params=params)

    def list_employees(self) -> list:
        return self._request("GET", "/expense/employees/all")

    def create_employee(self, payload: Mapping[str, Any]) -> dict:
        return self._request("POST", "/expense/employees", json=dict(payload))

    def delete_employee(self, employee_id: int) -> None:
        self._request("DELETE", f"/expense/employees/{employee_id}")

    # reports and settings

    def report(self, kind: str = "data", period: str = "month") -> Any:
        if kind not in REPORTS:
            raise ValueError(f"Unknown report '{kind}'")
        return self._request("GET", f"/reports/{kind}", params={"period": period})

    def custom_report(self, start: date | str, end: date | str) -> dict:
        return self._request("GET", "/reports/custom", params={"startDate": str(start), "endDate": str(end)})

    def get_settings(self, section: str) -> dict:
        if section not in SETTINGS:
            raise ValueError(f"Unknown settings section '{section}'")
        return self._request("GET", f"/settings/{section}")

    def save_settings(self, section: str, payload: Mapping[str, Any]) -> dict:
        if section not in SETTINGS:
            raise ValueError(f"Unknown settings section '{section}'")
        return self._request("POST", f"/settings/{section}", json=dict(payload))

    def list_staff(self) -> list:
        return self._request("GET", "/settings/staff")

    def create_staff(self, payload: Mapping[str, Any]) -> dict:
        return self._request("POST", "/settings/staff", json=dict(payload))


class ListPoller:
    """Keeps one list fresh from a single background thread.

    `fetch` runs immediately on `start()` and then every `interval` seconds.
    `refresh()` asks for an early fetch; it is ignored while a fetch is
    already running. After `stop()` no more fetches start and a result that
    arrives late is dropped instead of being delivered.
    """

    def __init__(
        self,
        fetch: Callable[[], Any],
        on_result: Callable[[Any], None],
        *,
        interval: float = 5.0,
        on_error: Optional[Callable[[NetworkError], None]] = None,
        name: str = "list-poller",
    ) -> None:
        self.fetch = fetch
        self.on_result = on_result
        self.on_error = on_error
        self.interval = interval
        self.name = name
        self._lock = threading.Lock()
        self._wake = threading.Event()
        self._stopped = threading.Event()
        self._in_flight = False
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._in_flight

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("poller already started")
        self._wake.set()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def refresh(self) -> bool:
        with self._lock:
            if self._in_flight or self._stopped.is_set():
                return False
            self._wake.set()
            return True

    def stop(self, timeout: float | None = None) -> None:
        self._stopped.set()
        self._wake.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stopped.is_set():
            self._wake.wait(self.interval)
            self._wake.clear()
            if self._stopped.is_set():
                break
            self._poll_once()
        logger.debug("%s stopped", self.name)

    def _poll_once(self) -> None:
        with self._lock:
            self._in_flight = True
        try:
            result = self.fetch()
        except NetworkError as e:
            logger.warning("%s: refresh failed: %s", self.name, e)
            if self.on_error is not None and not self._stopped.is_set():
                self.on_error(e)
            return
        finally:
            with self._lock:
                self._in_flight = False

        if self._stopped.is_set():
            logger.debug("%s: dropping result that arrived after stop()", self.name)
            return
        self.on_result(result)
