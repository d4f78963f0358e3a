"""Time-bounded client secret issuance."""
from __future__ import annotations
import calendar
import datetime
from typing import Callable, Optional

from .graph.applications import ApplicationService

DEFAULT_VALIDITY_MONTHS = 6
DEFAULT_SECRET_NAME = "provisioned-by-entra-provisioner"


def add_months(moment: datetime.datetime, months: int) -> datetime.datetime:
    """Shift ``moment`` by calendar months, clamping the day to the month end.

    >>> add_months(datetime.datetime(2026, 8, 31), 6)
    datetime.datetime(2027, 2, 28, 0, 0)
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)


class CredentialIssuer:
    """Issues the one client secret of a provisioned application."""

    def __init__(
        self,
        applications: ApplicationService,
        *,
        validity_months: int = DEFAULT_VALIDITY_MONTHS,
        display_name: str = DEFAULT_SECRET_NAME,
        clock: Optional[Callable[[], datetime.datetime]] = None,
    ):
        if validity_months <= 0:
            raise ValueError("validity_months must be positive")
        self.applications = applications
        self.validity_months = validity_months
        self.display_name = display_name
        self._clock = clock or _utcnow

    def validity_window(self) -> tuple[datetime.datetime, datetime.datetime]:
        not_before = self._clock()
        return not_before, add_months(not_before, self.validity_months)

    def issue(self, object_id: str) -> str:
        """Create the secret and return its plaintext. It is not kept anywhere."""
        not_before, not_after = self.validity_window()
        return self.applications.create_application_secret(object_id, self.display_name, not_before, not_after)
