"""
Spreadsheet export of flagged GTM accounts.

Each run adds one tab to the target spreadsheet, named by the run timestamp
(yyyy-MM-dd HH:mm:ss in the configured time zone), holding a bold frozen header
and one row per flagged account. Export failures never abort the run: they are
logged and reported to the caller as "no sheet" (None).
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from gtm_admin_audit import config
from gtm_admin_audit.admin_audit import FlaggedRow

logger = logging.getLogger("gtm_admin_audit.sheet_exporter")

HEADER = ["Account Name", "Account ID", "Admin Count", "Admin Link"]
TAB_NAME_FORMAT = "%Y-%m-%d %H:%M:%S"
COPY_SUFFIX = " (Copy)"


def _col_to_letter(n: int) -> str:
    """1 -> A, 26 -> Z, 27 -> AA."""
    s = ""
    while n > 0:
        n, r = divmod(n - 1, 26)
        s = chr(65 + r) + s
    return s or "A"


def _quote_sheet(sheet_name: str) -> str:
    """Quote sheet name for A1 notation if it contains space or dot."""
    if " " in sheet_name or "." in sheet_name or "'" in sheet_name:
        return "'" + sheet_name.replace("'", "''") + "'"
    return sheet_name


def timestamp_tab_name(time_zone: str, now: Optional[datetime] = None) -> str:
    if now is None:
        now = datetime.now(ZoneInfo(time_zone))
    elif now.tzinfo is not None:
        now = now.astimezone(ZoneInfo(time_zone))
    return now.strftime(TAB_NAME_FORMAT)


def unique_tab_name(base: str, existing: Iterable[str]) -> str:
    """base, then "base (Copy)", then "base (Copy 2)", ... whichever is free first."""
    taken = set(existing)
    if base not in taken:
        return base
    candidate = base + COPY_SUFFIX
    n = 2
    while candidate in taken:
        candidate = f"{base} (Copy {n})"
        n += 1
    return candidate


def build_values(rows: Sequence[FlaggedRow]) -> List[List]:
    return [list(HEADER)] + [row.as_sheet_row() for row in rows]


def build_format_requests(sheet_id: int) -> list:
    """Freeze and bold the header row, then auto-size the data columns."""
    return [
        {
            "updateSheetProperties": {
                "properties": {
                    "sheetId": sheet_id,
                    "gridProperties": {"frozenRowCount": 1},
                },
                "fields": "gridProperties.frozenRowCount",
            },
        },
        {
            "repeatCell": {
                "range": {
                    "sheetId": sheet_id,
                    "startRowIndex": 0,
                    "endRowIndex": 1,
                    "startColumnIndex": 0,
                    "endColumnIndex": len(HEADER),
                },
                "cell": {
                    "userEnteredFormat": {
                        "textFormat": {"bold": True},
                    },
                },
                "fields": "userEnteredFormat.textFormat.bold",
            },
        },
        {
            "autoResizeDimensions": {
                "dimensions": {
                    "sheetId": sheet_id,
                    "dimension": "COLUMNS",
                    "startIndex": 0,
                    "endIndex": len(HEADER),
                },
            },
        },
    ]


def open_spreadsheet(sheets_service, spreadsheet_id: str) -> dict:
    return sheets_service.spreadsheets().get(
        spreadsheetId=spreadsheet_id,
        fields="spreadsheetId,spreadsheetUrl,sheets.properties(sheetId,title)",
    ).execute()


def add_tab(sheets_service, spreadsheet_id: str, title: str) -> int:
    """Insert a new tab and return its sheetId."""
    response = sheets_service.spreadsheets().batchUpdate(
        spreadsheetId=spreadsheet_id,
        body={"requests": [{"addSheet": {"properties": {"title": title}}}]},
    ).execute()
    return response["replies"][0]["addSheet"]["properties"]["sheetId"]


def write_rows(sheets_service, spreadsheet_id: str, title: str, rows: Sequence[FlaggedRow]) -> None:
    """
    Account data goes in as RAW so names and IDs stay literal strings; only the
    link column is USER_ENTERED so its HYPERLINK formula is evaluated.
    """
    values = build_values(rows)
    last_data_col = _col_to_letter(len(HEADER) - 1)
    link_col = _col_to_letter(len(HEADER))
    sheet = _quote_sheet(title)
    sheets_service.spreadsheets().values().update(
        spreadsheetId=spreadsheet_id,
        range="{}!A1:{}{}".format(sheet, last_data_col, len(values)),
        valueInputOption="RAW",
        body={"values": [v[:-1] for v in values]},
    ).execute()
    sheets_service.spreadsheets().values().update(
        spreadsheetId=spreadsheet_id,
        range="{}!{}1:{}{}".format(sheet, link_col, link_col, len(values)),
        valueInputOption="USER_ENTERED",
        body={"values": [v[-1:] for v in values]},
    ).execute()


def export_flagged_rows(
    sheets_service,
    spreadsheet_id: Optional[str],
    rows: Sequence[FlaggedRow],
    time_zone: str = config.DEFAULT_TIME_ZONE,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """
    Write flagged rows to a new timestamped tab. Returns the spreadsheet URL, or
    None when export was skipped or failed.
    """
    if not spreadsheet_id:
        logger.info("No SHEET_ID configured; skipping spreadsheet export.")
        return None
    if not rows:
        logger.info("No flagged accounts; skipping spreadsheet export.")
        return None

    try:
        meta = open_spreadsheet(sheets_service, spreadsheet_id)
    except Exception as e:
        logger.error("Could not open spreadsheet %s: %s", spreadsheet_id, e)
        return None

    try:
        existing = [
            (s.get("properties") or {}).get("title", "")
            for s in meta.get("sheets", [])
        ]
        title = unique_tab_name(timestamp_tab_name(time_zone, now), existing)
        sheet_id = add_tab(sheets_service, spreadsheet_id, title)
        write_rows(sheets_service, spreadsheet_id, title, rows)
        sheets_service.spreadsheets().batchUpdate(
            spreadsheetId=spreadsheet_id,
            body={"requests": build_format_requests(sheet_id)},
        ).execute()
    except Exception as e:
        logger.error("Failed to write flagged accounts to spreadsheet %s: %s", spreadsheet_id, e)
        return None

    url = meta.get("spreadsheetUrl") or config.SPREADSHEET_URL.format(spreadsheet_id=spreadsheet_id)
    logger.info("Wrote %d flagged account(s) to tab %r: %s", len(rows), title, url)
    return url
