from __future__ import annotations
import csv
import io
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional
from zoneinfo import ZoneInfo

from ..core.errors import MissingHeadersError

logger = logging.getLogger(__name__)


# Remedy export header -> (uploaded_tickets column, kind)
HEADER_FIELD_MAP: Dict[str, tuple[str, str]] = {
    "Incident ID": ("incident_id", "text"),
    "Priority": ("priority", "text"),
    "Region": ("region", "text"),
    "Assigned_Support_Organization": ("assigned_support_organization", "text"),
    "Assigned Group": ("assigned_group", "text"),
    "Vertical": ("vertical", "text"),
    "Sub-Vertical": ("sub_vertical", "text"),
    "Owner Support Organization": ("owner_support_organization", "text"),
    "Owner Group": ("owner_group", "text"),
    "Owner": ("owner", "text"),
    "Reported source": ("reported_source", "text"),
    "User Name": ("user_name", "text"),
    "Site Group": ("site_group", "text"),
    "Operational Categorization Tier 1": ("operational_category_tier_1", "text"),
    "Operational Categorization Tier 2": ("operational_category_tier_2", "text"),
    "Operational Categorization Tier 3": ("operational_category_tier_3", "text"),
    "Product Name": ("product_name", "text"),
    "Product Categorization Tier 1": ("product_categorization_tier_1", "text"),
    "Product Categorization Tier 2": ("product_categorization_tier_2", "text"),
    "Product Categorization Tier 3": ("product_categorization_tier_3", "text"),
    "Incident Type": ("incident_type", "text"),
    "Summary": ("summary", "text"),
    "Assignee": ("assignee", "text"),
    "Reported Date1": ("reported_date1", "datetime"),
    "Responded Date": ("responded_date", "datetime"),
    "Last Resolved Date": ("last_resolved_date", "datetime"),
    "Closed_Date": ("closed_date", "datetime"),
    "Status": ("status", "text"),
    "Status_Reason_Hidden": ("status_reason_hidden", "text"),
    "Pending Reason": ("pending_reason", "text"),
    "Group Transfers": ("group_transfers", "int"),
    "Total Transfers": ("total_transfers", "int"),
    "Department": ("department", "text"),
    "VIP": ("vip", "bool"),
    "Company": ("company", "text"),
    "Vendor Ticket Number": ("vendor_ticket_number", "text"),
    "Reported to Vendor": ("reported_to_vendor", "bool"),
    "Resolution": ("resolution", "text"),
    "Resolver Group": ("resolver_group", "text"),
    "Reopen count": ("reopen_count", "int"),
    "ReOpened Date": ("reopened_date", "datetime"),
    "Service Desk 1st Assigned Date": ("service_desk_1st_assigned_date", "datetime"),
    "Service Desk 1st Assigned Group": ("service_desk_1st_assigned_group", "text"),
    "Submitter": ("submitter", "text"),
    "Owner Login ID": ("owner_login_id", "text"),
    "Impact": ("impact", "text"),
    "Submit Date": ("submit_date", "datetime"),
    "Report Date": ("report_date", "datetime"),
    "VIL Function": ("vil_function", "text"),
    "IT Partner": ("it_partner", "text"),
    "MTTR": ("mttr", "minutes"),
    "MTTI": ("mtti", "minutes"),
}

REQUIRED_HEADERS: List[str] = list(HEADER_FIELD_MAP)

TICKET_FIELDS = frozenset(col for col, _ in HEADER_FIELD_MAP.values())

_TRUE = {"yes", "y", "true", "t", "1"}
_FALSE = {"no", "n", "false", "f", "0"}

_AMPM_FORMATS = ("%m/%d/%Y, %I:%M:%S %p", "%m/%d/%Y, %I:%M %p")
_PLAIN_FORMATS = ("%m/%d/%Y %H:%M:%S", "%m/%d/%Y %H:%M", "%m/%d/%Y", "%Y-%m-%d %H:%M:%S")


def split_csv_line(line: str) -> List[str]:
    """Split one CSV line, honouring quotes: `"a,b""c"` -> `a,b"c`."""
    if not line:
        return []
    return next(csv.reader([line]), [])


def _clean_header(h: str) -> str:
    return h.strip().lstrip("\ufeff").strip().strip('"').strip()


def parse_header_line(line: str) -> List[str]:
    return [_clean_header(h) for h in line.split(",")]


def validate_headers(header_line: str) -> List[str]:
    """Return the cleaned header list or raise MissingHeadersError."""
    present = set(parse_header_line(header_line))
    missing = [h for h in REQUIRED_HEADERS if h not in present]
    if missing:
        raise MissingHeadersError(missing)
    return [_clean_header(h) for h in split_csv_line(header_line)]


def iter_data_rows(text: str) -> Iterator[List[str]]:
    """Yield data rows after the header.

    Only whitespace-only lines are skipped. A line of bare commas is still a
    row and counts towards the totals.
    """
    reader = csv.reader(io.StringIO(text))
    next(reader, None)
    for values in reader:
        if not values or (len(values) == 1 and not values[0].strip()):
            continue
        yield values


def slugify_header(header: str) -> str:
    s = re.sub(r"[^0-9a-zA-Z]+", "_", header.strip().lower())
    return s.strip("_")


def header_to_field(header: str) -> tuple[str, str]:
    if header in HEADER_FIELD_MAP:
        return HEADER_FIELD_MAP[header]
    return slugify_header(header), "text"


def to_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = value.strip()
    return v or None


def to_int(value: Optional[str]) -> Optional[int]:
    v = to_text(value)
    if v is None:
        return None
    try:
        return int(float(v.replace(",", "")))
    except ValueError:
        logger.warning("Unparseable integer %r; storing null", v)
        return None


def to_bool(value: Optional[str]) -> Optional[bool]:
    v = to_text(value)
    if v is None:
        return None
    low = v.lower()
    if low in _TRUE:
        return True
    if low in _FALSE:
        return False
    return None


def to_minutes(value: Optional[str]) -> Optional[float]:
    """Numbers pass through; HH:MM:SS and MM:SS become minutes."""
    v = to_text(value)
    if v is None:
        return None
    try:
        return float(v)
    except ValueError:
        pass
    parts = v.split(":")
    try:
        nums = [int(p) for p in parts]
    except ValueError:
        logger.warning("Unparseable duration %r; storing null", v)
        return None
    if len(nums) == 3:
        h, m, s = nums
    elif len(nums) == 2:
        h, (m, s) = 0, nums
    else:
        logger.warning("Unparseable duration %r; storing null", v)
        return None
    if m > 59 or s > 59 or min(nums) < 0:
        logger.warning("Out-of-range duration %r; storing null", v)
        return None
    return round((h * 3600 + m * 60 + s) / 60.0, 2)


def parse_itsm_datetime(value: Optional[str], tz_name: str = "UTC") -> Optional[datetime]:
    """Parse an ITSM timestamp such as "08/18/2025, 07:11:50 PM".

    Naive values are taken to be wall-clock time in `tz_name`; the result is
    always in UTC. Anything that does not parse returns None and is logged;
    it never raises.
    """
    v = to_text(value)
    if v is None:
        return None

    dt: Optional[datetime] = None
    upper = v.upper()
    if "," in v and ("AM" in upper or "PM" in upper):
        for fmt in _AMPM_FORMATS:
            try:
                dt = datetime.strptime(v, fmt)
                break
            except ValueError:
                continue
    else:
        try:
            dt = datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError:
            for fmt in _PLAIN_FORMATS:
                try:
                    dt = datetime.strptime(v, fmt)
                    break
                except ValueError:
                    continue

    if dt is None:
        logger.warning("Unparseable date %r; storing null", v)
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(tz_name))
    return dt.astimezone(timezone.utc)


def convert_value(kind: str, raw: Optional[str], tz_name: str = "UTC") -> Any:
    if kind == "datetime":
        return parse_itsm_datetime(raw, tz_name)
    if kind == "int":
        return to_int(raw)
    if kind == "bool":
        return to_bool(raw)
    if kind == "minutes":
        return to_minutes(raw)
    return to_text(raw)


def map_row(headers: List[str], values: List[str], tz_name: str = "UTC") -> Dict[str, Any]:
    """Turn one CSV row into a dict of uploaded_tickets columns.

    Headers outside HEADER_FIELD_MAP are slugified and kept in the dict; the
    importer only persists known columns.
    """
    record: Dict[str, Any] = {}
    for i, header in enumerate(headers):
        field, kind = header_to_field(header)
        if not field:
            continue
        raw = values[i] if i < len(values) else None
        record[field] = convert_value(kind, raw, tz_name)
    return record


SAMPLE_ROW: Dict[str, str] = {
    "Incident ID": "INC000012345678",
    "Priority": "High",
    "Region": "North",
    "Assigned_Support_Organization": "IT Support Team A",
    "Assigned Group": "L2 Applications",
    "Vertical": "Enterprise",
    "Sub-Vertical": "Billing",
    "Owner Support Organization": "IT Support Team A",
    "Owner Group": "Service Desk",
    "Owner": "Jane Owner",
    "Reported source": "Email",
    "User Name": "John Requester",
    "Site Group": "HQ",
    "Operational Categorization Tier 1": "Request",
    "Operational Categorization Tier 2": "Access",
    "Operational Categorization Tier 3": "Password Reset",
    "Product Name": "Billing Portal",
    "Product Categorization Tier 1": "Software",
    "Product Categorization Tier 2": "Application",
    "Product Categorization Tier 3": "Web",
    "Incident Type": "User Service Restoration",
    "Summary": 'Login fails with "invalid token", see attached',
    "Assignee": "john.doe",
    "Reported Date1": "08/18/2025, 07:11:50 PM",
    "Responded Date": "08/18/2025, 07:20:02 PM",
    "Last Resolved Date": "08/19/2025, 10:05:00 AM",
    "Closed_Date": "",
    "Status": "Resolved",
    "Status_Reason_Hidden": "",
    "Pending Reason": "",
    "Group Transfers": "1",
    "Total Transfers": "2",
    "Department": "Finance",
    "VIP": "No",
    "Company": "Acme",
    "Vendor Ticket Number": "",
    "Reported to Vendor": "No",
    "Resolution": "Reset session cache, user confirmed",
    "Resolver Group": "L2 Applications",
    "Reopen count": "0",
    "ReOpened Date": "",
    "Service Desk 1st Assigned Date": "08/18/2025, 07:12:30 PM",
    "Service Desk 1st Assigned Group": "Service Desk",
    "Submitter": "svc_remedy",
    "Owner Login ID": "jowner",
    "Impact": "3-Moderate/Limited",
    "Submit Date": "08/18/2025, 07:11:50 PM",
    "Report Date": "08/18/2025, 07:11:50 PM",
    "VIL Function": "IT",
    "IT Partner": "Partner X",
    "MTTR": "14:53:10",
    "MTTI": "00:08:12",
}


def build_sample_csv() -> str:
    sio = io.StringIO()
    writer = csv.writer(sio, lineterminator="\n")
    writer.writerow(REQUIRED_HEADERS)
    writer.writerow([SAMPLE_ROW.get(h, "") for h in REQUIRED_HEADERS])
    return sio.getvalue()
