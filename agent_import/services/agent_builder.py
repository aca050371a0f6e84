from __future__ import annotations

import math
from datetime import date, datetime, timedelta

from ..excel import columns as col
from ..models.entities import AgentStatus, NewAgent
from ..models.import_row import ImportRow
from .resolver import ReferenceContext

"""Mapping from a validated ImportRow to the NewAgent handed to the store."""

# Day 0 of the spreadsheet serial date system (accounts for the 1900 leap-year quirk).
_SERIAL_EPOCH = date(1899, 12, 30)


def parse_appointment_date(text: str | None) -> date | None:
    """Parse an ``Appointment Date`` cell.

    Accepts a spreadsheet serial day number (``45292``) or ISO text
    (``2024-01-01``, ``2024-01-01T00:00:00``). Returns None for a blank cell.

    Raises:
        ValueError: the text is neither form
    """
    if text is None or not text.strip():
        return None
    raw = text.strip()
    try:
        serial = float(raw)
    except ValueError:
        serial = None
    if serial is not None:
        if not math.isfinite(serial) or serial < 1:
            raise ValueError(f"invalid serial date: {raw}")
        try:
            return _SERIAL_EPOCH + timedelta(days=int(serial))
        except OverflowError as e:
            raise ValueError(f"serial date out of range: {raw}") from e
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return datetime.fromisoformat(raw).date()


def build_new_agent(
    row: ImportRow,
    context: ReferenceContext,
    agent_code: str,
    user_id: str,
    today: date | None = None,
) -> NewAgent:
    status = AgentStatus.parse(row.get(col.STATUS)) or AgentStatus.ACTIVE
    joining_date = parse_appointment_date(row.get(col.APPOINTMENT_DATE)) or today or date.today()
    manager = context.reporting_manager
    return NewAgent(
        agent_code=agent_code,
        first_name=row.get(col.FIRST_NAME) or "",
        last_name=row.get(col.LAST_NAME) or "",
        email=row.get(col.EMAIL) or "",
        phone_number=row.get(col.MOBILE_NUMBER) or "",
        channel_id=context.channel.id,
        designation_id=context.designation.id,
        project_id=context.project.id,
        user_id=user_id,
        status=status,
        joining_date=joining_date,
        reporting_manager_id=manager.id if manager else None,
        employee_id=row.get(col.CA_NUMBER),
        branch=row.get(col.BRANCH),
        province=row.get(col.PROVINCE),
        city=row.get(col.CITY),
        pin_code=row.get(col.PIN_CODE),
        tin=row.get(col.TIN),
    )
