from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ..db.repositories import AgentRepository
from ..excel import columns as col
from ..models.config_models import DEFAULT_MOBILE_PATTERN
from ..models.entities import AgentStatus, Project
from ..models.import_row import ImportRow
from ..models.validation_error import ValidationError
from .agent_builder import parse_appointment_date
from .resolver import Outcome, ReferenceContext, ReferenceResolver

"""Row validation for the bulk agent import.

Rules run in a fixed order:

1. required columns present (any miss -> one error per column, stop here)
2. email format
3. mobile number format
4. uniqueness of email / mobile number / supplied agent code
5. references: channel, designation mapped to that channel, reporting
   manager, status value, appointment date

Every failing rule adds one ValidationError; nothing is raised. When the row
passes, the resolved ReferenceContext is returned with it so that creation
does not look the references up a second time.
"""

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DEFAULT_MOBILE_MESSAGE = "Mobile number must be 11 digits and start with 0 or 9"
STATUS_VALUES = ", ".join(s.value for s in AgentStatus)


@dataclass(frozen=True)
class MobileRule:
    pattern: re.Pattern[str]
    message: str

    @staticmethod
    def from_pattern(pattern: str = DEFAULT_MOBILE_PATTERN) -> MobileRule:
        if pattern == DEFAULT_MOBILE_PATTERN:
            return MobileRule(re.compile(pattern), DEFAULT_MOBILE_MESSAGE)
        return MobileRule(re.compile(pattern), "Invalid mobile number format")

    def matches(self, text: str) -> bool:
        return self.pattern.fullmatch(text) is not None


DEFAULT_MOBILE_RULE = MobileRule.from_pattern()


@dataclass(frozen=True)
class RowValidation:
    errors: tuple[ValidationError, ...]
    context: ReferenceContext | None = None

    @property
    def ok(self) -> bool:
        return not self.errors


def normalize_agent_code(text: str) -> str:
    return text.strip().upper()


def check_required(row: ImportRow) -> list[ValidationError]:
    return [
        ValidationError.for_row(row, field, f"{field} is required")
        for field in col.REQUIRED_COLUMNS
        if not row.has(field)
    ]


def validate_row(
    row: ImportRow,
    project: Project,
    resolver: ReferenceResolver,
    agents: AgentRepository,
    mobile_rule: MobileRule = DEFAULT_MOBILE_RULE,
) -> RowValidation:
    """Validate one row; see the module docstring for the rule order."""
    missing = check_required(row)
    if missing:
        return RowValidation(errors=tuple(missing))

    errors: list[ValidationError] = []

    def fail(field: str, message: str) -> None:
        errors.append(ValidationError.for_row(row, field, message))

    email = row.get(col.EMAIL) or ""
    mobile = row.get(col.MOBILE_NUMBER) or ""

    email_ok = EMAIL_RE.match(email) is not None
    if not email_ok:
        fail(col.EMAIL, "Invalid email format")

    mobile_ok = mobile_rule.matches(mobile)
    if not mobile_ok:
        fail(col.MOBILE_NUMBER, mobile_rule.message)

    if email_ok and agents.exists_email(email):
        fail(col.EMAIL, "Email already exists")
    if mobile_ok and agents.exists_phone(mobile):
        fail(col.MOBILE_NUMBER, "Mobile number already exists")
    supplied_code = row.get(col.AGENT_CODE)
    if supplied_code and agents.exists_code(normalize_agent_code(supplied_code)):
        fail(col.AGENT_CODE, "Agent code already exists")

    channel_text = row.get(col.CHANNEL) or ""
    designation_text = row.get(col.DESIGNATION) or ""
    channel = None
    designation = None
    channel_res = resolver.resolve_channel(channel_text)
    if channel_res.outcome is Outcome.NOT_FOUND:
        fail(col.CHANNEL, "Invalid channel")
    elif channel_res.outcome is Outcome.AMBIGUOUS:
        fail(col.CHANNEL, f"Channel '{channel_text}' matches more than one channel")
    else:
        channel = channel_res.value
        designation_res = resolver.resolve_designation(designation_text, channel)
        if designation_res.outcome is Outcome.NOT_FOUND:
            fail(col.DESIGNATION, "Invalid designation")
        elif designation_res.outcome is Outcome.NOT_IN_CHANNEL:
            fail(
                col.DESIGNATION,
                f"Designation '{designation_text}' is not mapped to channel '{channel_text}'",
            )
        elif designation_res.outcome is Outcome.AMBIGUOUS:
            fail(
                col.DESIGNATION,
                f"Designation '{designation_text}' matches more than one designation "
                f"in channel '{channel_text}'",
            )
        else:
            designation = designation_res.value

    manager = None
    manager_code = row.get(col.REPORTING_MANAGER_ID)
    if manager_code:
        manager_res = resolver.resolve_reporting_manager(manager_code)
        if manager_res.found:
            manager = manager_res.value
        else:
            fail(col.REPORTING_MANAGER_ID, "Invalid reporting manager")

    status_text = row.get(col.STATUS)
    if status_text and AgentStatus.parse(status_text) is None:
        fail(col.STATUS, f"Invalid status. Must be one of: {STATUS_VALUES}")

    try:
        parse_appointment_date(row.get(col.APPOINTMENT_DATE))
    except ValueError:
        fail(col.APPOINTMENT_DATE, "Invalid appointment date")

    if errors or channel is None or designation is None:
        logger.debug("row=%d rejected errors=%d", row.row_number, len(errors))
        return RowValidation(errors=tuple(errors))

    return RowValidation(
        errors=(),
        context=ReferenceContext(
            project=project,
            channel=channel,
            designation=designation,
            reporting_manager=manager,
        ),
    )
