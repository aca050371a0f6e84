"""Spreadsheet column headers of the agent upload template (exact text)."""

FIRST_NAME = "Agent First Name"
LAST_NAME = "Agent Last Name"
EMAIL = "Email"
MOBILE_NUMBER = "Mobile Number"
CHANNEL = "Channel"
DESIGNATION = "Designation"

AGENT_CODE = "Agent Code"
BRANCH = "Branch"
APPOINTMENT_DATE = "Appointment Date"
CA_NUMBER = "CA Number"
PROVINCE = "Province"
CITY = "City"
PIN_CODE = "Pin Code"
STATUS = "Status"
REPORTING_MANAGER_ID = "Reporting Manager ID"
TIN = "TIN"

REQUIRED_COLUMNS: tuple[str, ...] = (
    FIRST_NAME,
    LAST_NAME,
    EMAIL,
    MOBILE_NUMBER,
    CHANNEL,
    DESIGNATION,
)

OPTIONAL_COLUMNS: tuple[str, ...] = (
    AGENT_CODE,
    BRANCH,
    APPOINTMENT_DATE,
    CA_NUMBER,
    PROVINCE,
    CITY,
    PIN_CODE,
    STATUS,
    REPORTING_MANAGER_ID,
    TIN,
)
