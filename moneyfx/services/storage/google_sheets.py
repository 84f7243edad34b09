"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the optional persistent backend because:
1. A personal-finance user can inspect the rate table directly
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (one row per pair per day is fine)
- No transactions: an upsert reads the sheet, then updates rows in place
  and appends the rest
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so it can be swapped
for a database without changing the conversion logic.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from moneyfx.config import GoogleSheetsSettings, get_settings
from moneyfx.models.audit import AuditEvent, AuditEventType, AuditSeverity
from moneyfx.models.rates import ExchangeRate
from moneyfx.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    RateStorageInterface,
    StorageError,
)


# Column mappings for the rates sheet
RATE_COLUMNS = [
    "base_currency",
    "target_currency",
    "fx_date",
    "rate",
    "fx_source",
    "is_stale",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
]


def _last_column_letter(columns: list[str]) -> str:
    return chr(ord("A") + len(columns) - 1)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")
        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_rates_sheet(self) -> gspread.Worksheet:
        """Get or create the daily rates worksheet."""
        return self._get_or_create_sheet(self._settings.rates_sheet_name, RATE_COLUMNS, 5000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000)


class GoogleSheetsRateStorage(RateStorageInterface):
    """
    Google Sheets implementation of the rate table.

    One rate per row. The (base, target, fx_date) triple in the first
    three columns is the upsert key.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _rate_to_row(self, rate: ExchangeRate) -> list:
        return [
            rate.base_currency,
            rate.target_currency,
            rate.fx_date.isoformat(),
            str(rate.rate),
            rate.source,
            str(rate.is_stale),
            rate.created_at.isoformat(),
        ]

    def _row_to_rate(self, row: list) -> ExchangeRate:
        return ExchangeRate(
            base_currency=row[0],
            target_currency=row[1],
            fx_date=date.fromisoformat(row[2]),
            rate=Decimal(row[3]),
            source=row[4],
            is_stale=row[5].lower() == "true",
            created_at=datetime.fromisoformat(row[6]),
        )

    def _read_rates(self, fx_date: Optional[date] = None) -> list[ExchangeRate]:
        sheet = self._client.get_rates_sheet()
        rates = []
        for row in sheet.get_all_values()[1:]:  # Skip header
            if len(row) < len(RATE_COLUMNS) or not row[0]:
                continue
            if fx_date is not None and row[2] != fx_date.isoformat():
                continue
            try:
                rates.append(self._row_to_rate(row))
            except Exception:
                continue  # Skip malformed rows
        return rates

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upsert_rates(self, rates: list[ExchangeRate]) -> int:
        """Update rows whose key already exists, append the rest."""
        if not rates:
            return 0
        try:
            sheet = self._client.get_rates_sheet()
            existing: dict[tuple[str, str, str], int] = {}
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2):  # Row 1 is header
                if len(row) >= 3 and row[0]:
                    existing[(row[0], row[1], row[2])] = idx

            last_column = _last_column_letter(RATE_COLUMNS)
            new_rows = []
            pending: dict[tuple[str, str, str], list] = {}
            for rate in rates:
                key = (rate.base_currency, rate.target_currency, rate.fx_date.isoformat())
                pending[key] = self._rate_to_row(rate)

            for key, row in pending.items():
                if key in existing:
                    idx = existing[key]
                    sheet.update(range_name=f"A{idx}:{last_column}{idx}", values=[row])
                else:
                    new_rows.append(row)

            if new_rows:
                sheet.append_rows(new_rows, value_input_option="RAW")
            return len(pending)
        except Exception as e:
            raise StorageError(f"Failed to store rates: {e}")

    async def get_rate(
        self,
        base_currency: str,
        target_currency: str,
        fx_date: date,
    ) -> Optional[ExchangeRate]:
        try:
            for rate in self._read_rates(fx_date):
                if rate.pair == (base_currency.upper(), target_currency.upper()):
                    return rate
            return None
        except Exception as e:
            raise StorageError(f"Failed to get rate: {e}")

    async def get_rates_for_date(
        self,
        fx_date: date,
        include_stale: bool = True,
    ) -> list[ExchangeRate]:
        try:
            rates = [
                rate for rate in self._read_rates(fx_date)
                if include_stale or not rate.is_stale
            ]
            rates.sort(key=lambda r: (r.base_currency, r.target_currency))
            return rates
        except Exception as e:
            raise StorageError(f"Failed to list rates: {e}")

    async def has_rates_for_date(self, fx_date: date) -> bool:
        return bool(await self.get_rates_for_date(fx_date))

    async def has_stale_rates_for_date(self, fx_date: date) -> bool:
        return any(rate.is_stale for rate in await self.get_rates_for_date(fx_date))


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Append-only - we never modify or delete audit events.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _event_to_row(self, event: AuditEvent) -> list:
        """Convert an AuditEvent to a spreadsheet row."""
        return event.to_sheets_row()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_code=safe_get(9) or None,
            error_message=safe_get(10) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(self._event_to_row(event), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            sheet = self._client.get_audit_sheet()
            events = []
            for row in sheet.get_all_values()[1:]:
                if row and len(row) > 6 and row[6] == str(correlation_id):
                    try:
                        events.append(self._row_to_event(row))
                    except Exception:
                        continue
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            events = []
            for row in sheet.get_all_values()[1:]:
                if row and row[0]:
                    try:
                        events.append(self._row_to_event(row))
                    except Exception:
                        continue
            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
