"""
Supabase (PostgREST) booking store.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncContextManager, Dict, List, Optional, Tuple

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import BookingNotFound, BookingStoreError, SlotNoLongerAvailable
from ..domain.models import Booking, BookingRequest, Service, WorkingInterval
from .locks import StudioLocks
from .rows import (
    Row,
    booking_changes_to_row,
    booking_request_to_row,
    find_active_interval,
    parse_booking,
    parse_service,
)

logger = logging.getLogger(__name__)


class SupabaseBookingStore:
    """
    Booking store backed by the Supabase REST API.

    Uses the ``/rest/v1/<table>`` endpoints with the project's API key.
    Blocking HTTP calls run in a worker thread so the service stays async.

    The lock only serialises commits within this process. Exclusivity
    across processes relies on an exclusion constraint on
    ``bookings (studio_id, tstzrange(start_time, end_time))``; a violation
    comes back as HTTP 409 and is raised as ``SlotNoLongerAvailable``.
    """

    REST_PATH = "/rest/v1"

    def __init__(
        self,
        url: str,
        api_key: str,
        timezone: str = "UTC",
        session: Optional[requests.Session] = None,
        timeout: int = 30,
    ):
        """
        Initialize the Supabase client.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            api_key: Anon or service-role key
            timezone: IANA timezone used for opening hours and parsed bookings
            session: Optional requests session (injected in tests)
            timeout: HTTP timeout in seconds
        """
        self.base_url = url.rstrip("/") + self.REST_PATH
        self.timezone = timezone
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        self._locks = StudioLocks()

    async def get_service(self, studio_id: str, service_id: str) -> Optional[Service]:
        rows = await self._call(
            "GET",
            "services",
            params=[("id", f"eq.{service_id}"), ("studio_id", f"eq.{studio_id}"), ("select", "*")],
        )
        return parse_service(rows[0]) if rows else None

    async def get_working_interval(
        self,
        studio_id: str,
        day_of_week: int,
    ) -> Optional[WorkingInterval]:
        rows = await self._call(
            "GET",
            "studio_availability",
            params=[
                ("studio_id", f"eq.{studio_id}"),
                ("day_of_week", f"eq.{day_of_week}"),
                ("active", "eq.true"),
                ("select", "*"),
            ],
        )
        return find_active_interval(rows, studio_id, day_of_week, self.timezone)

    async def get_bookings(
        self,
        studio_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Booking]:
        rows = await self._call(
            "GET",
            "bookings",
            params=[
                ("studio_id", f"eq.{studio_id}"),
                ("start_time", f"lt.{_utc(end)}"),
                ("end_time", f"gt.{_utc(start)}"),
                ("order", "start_time"),
                ("select", "*"),
            ],
        )
        return [parse_booking(row, self.timezone) for row in rows]

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        rows = await self._call(
            "GET",
            "bookings",
            params=[("id", f"eq.{booking_id}"), ("select", "*")],
        )
        return parse_booking(rows[0], self.timezone) if rows else None

    async def insert_booking(self, request: BookingRequest) -> Booking:
        rows = await self._call("POST", "bookings", json=booking_request_to_row(request))
        if not rows:
            raise BookingStoreError("Booking insert returned no row")
        return parse_booking(rows[0], self.timezone)

    async def update_booking(self, booking_id: str, **changes: Any) -> Booking:
        payload = booking_changes_to_row(changes)
        payload["updated_at"] = pendulum.now("UTC").to_iso8601_string()

        rows = await self._call(
            "PATCH",
            "bookings",
            params=[("id", f"eq.{booking_id}")],
            json=payload,
        )
        if not rows:
            raise BookingNotFound(f"Booking not found: {booking_id}")
        return parse_booking(rows[0], self.timezone)

    def lock(self, studio_id: str) -> AsyncContextManager[None]:
        return self._locks.hold(studio_id)

    async def _call(
        self,
        method: str,
        table: str,
        params: Optional[List[Tuple[str, str]]] = None,
        json: Optional[Row] = None,
    ) -> List[Row]:
        return await asyncio.to_thread(self._request, method, table, params, json)

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[List[Tuple[str, str]]] = None,
        json: Optional[Row] = None,
    ) -> List[Row]:
        """
        Perform one REST call and return the decoded rows.

        Raises:
            SlotNoLongerAvailable: If the database rejected an overlapping booking
            BookingStoreError: If the request fails for any other reason
        """
        url = f"{self.base_url}/{table}"
        logger.debug("%s %s %s", method, url, params or "")

        try:
            response = self.session.request(
                method,
                url,
                headers=self.headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )

            if response.status_code == 409 and table == "bookings":
                raise SlotNoLongerAvailable(
                    "The requested time overlaps an existing booking. Please choose another time."
                )

            response.raise_for_status()
            data = response.json() if response.content else []

        except requests.exceptions.RequestException as e:
            raise BookingStoreError(f"Failed to {method} {table} on Supabase: {e}") from e
        except ValueError as e:
            raise BookingStoreError(f"Invalid JSON from Supabase for {table}: {e}") from e

        if isinstance(data, dict):
            return [data]
        return data


def _utc(dt: DateTime) -> str:
    return dt.in_timezone("UTC").to_iso8601_string()
