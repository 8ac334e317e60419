"""
Google Sheets Storage Implementation

Each tenant owns a spreadsheet with one worksheet per entity (Debts,
Expenses, CreditHistory). A separate master spreadsheet, opened with a
service account, holds the tenant directory (Users).

Rows have a fixed column order per worksheet. The column tables below
are the single source of truth for that order; the header row of every
worksheet is checked against them on each read and a mismatch fails
fast with SchemaMismatchError instead of silently mis-reading columns.

Blank cells read as None (or the model default). Expense rows without a
valid date are skipped with a warning.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Sequence

import gspread
import structlog
from google.oauth2.credentials import Credentials as UserCredentials
from google.oauth2.service_account import Credentials as ServiceAccountCredentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from finance_tracker.config import GoogleSheetsSettings, get_settings
from finance_tracker.exceptions import BadRequestError
from finance_tracker.finance.dates import parse_date
from finance_tracker.models.debt import (
    CreditHistoryRecord,
    Debt,
    DebtUpdate,
    Expense,
    UserAccount,
)
from finance_tracker.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    SchemaMismatchError,
    StorageError,
    TenantDirectoryInterface,
)


logger = structlog.get_logger(__name__)


SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.readonly",
]

# Column mappings: (sheet header, model field)
DEBT_COLUMNS = [
    ("id", "id"),
    ("name", "name"),
    ("issuer", "issuer"),
    ("creditLimit", "credit_limit"),
    ("balance", "balance"),
    ("dueDay", "due_day"),
    ("cutOffDay", "cut_off_day"),
    ("maskPan", "mask_pan"),
    ("interesEfectivo", "annual_effective_rate"),
    ("brand", "brand"),
    ("active", "active"),
]

EXPENSE_COLUMNS = [
    ("id", "id"),
    ("date", "date"),
    ("description", "description"),
    ("category", "category"),
    ("amount", "amount"),
    ("debtId", "debt_id"),
    ("entryType", "entry_type"),
]

CREDIT_HISTORY_COLUMNS = [
    ("debtId", "debt_id"),
    ("statementDate", "statement_date"),
    ("dueDate", "due_date"),
    ("previousBalance", "previous_balance"),
    ("charges", "charges"),
    ("interests", "interests"),
    ("payments", "payments"),
    ("statementBalance", "statement_balance"),
    ("bonifiableInterest", "bonifiable_interest"),
    ("installmentBalance", "installment_balance"),
    ("annualEffectiveRate", "annual_effective_rate"),
    ("termMonths", "term_months"),
    ("periodDays", "period_days"),
    ("paymentMade", "payment_made"),
]

USER_COLUMNS = [
    ("id", "id"),
    ("googleId", "google_id"),
    ("email", "email"),
    ("name", "name"),
    ("sheetId", "sheet_id"),
    ("accessToken", "access_token"),
    ("refreshToken", "refresh_token"),
    ("createdAt", "created_at"),
    ("lastLogin", "last_login"),
]


def _headers(columns: Sequence[tuple[str, str]]) -> list[str]:
    return [header for header, _ in columns]


def validate_header(
    sheet_name: str,
    header: Sequence[str],
    columns: Sequence[tuple[str, str]],
) -> None:
    """
    Check a worksheet header row against its column table.

    Extra trailing columns are allowed; missing or reordered ones are not.

    Raises:
        SchemaMismatchError: If the header doesn't match
    """
    expected = _headers(columns)
    actual = [str(h).strip() for h in header[:len(expected)]]
    if actual != expected:
        raise SchemaMismatchError(
            f"Sheet '{sheet_name}' header mismatch: expected {expected}, got {actual}"
        )


def _row_to_dict(row: Sequence[str], columns: Sequence[tuple[str, str]]) -> dict:
    """Map a row onto model fields; blank and missing cells are dropped."""
    data = {}
    for idx, (_, field) in enumerate(columns):
        value = row[idx].strip() if idx < len(row) and row[idx] is not None else ""
        if value != "":
            data[field] = value
    return data


def _cell(value) -> str:
    """Format a model value for a RAW spreadsheet write."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _model_to_row(model, columns: Sequence[tuple[str, str]]) -> list[str]:
    return [_cell(getattr(model, field)) for _, field in columns]


def _parse_bool(value: Optional[str]) -> bool:
    return str(value or "").strip().upper() == "TRUE"


def _parse_optional_decimal(value: Optional[str]) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value).replace(",", ""))
    except InvalidOperation:
        raise StorageError(f"Invalid number in sheet: {value!r}")


def _parse_optional_int(value: Optional[str]) -> Optional[int]:
    number = _parse_optional_decimal(value)
    return int(number) if number is not None else None


def row_to_debt(row: Sequence[str]) -> Debt:
    data = _row_to_dict(row, DEBT_COLUMNS)
    data["active"] = _parse_bool(data.get("active"))
    for field in ("credit_limit", "annual_effective_rate"):
        data[field] = _parse_optional_decimal(data.get(field))
    data["balance"] = _parse_optional_decimal(data.get("balance")) or Decimal("0")
    for field in ("due_day", "cut_off_day"):
        data[field] = _parse_optional_int(data.get(field))
    return Debt(**data)


def row_to_expense(row: Sequence[str]) -> Optional[Expense]:
    """Parse an Expenses row; a row without a usable date yields None."""
    data = _row_to_dict(row, EXPENSE_COLUMNS)
    try:
        data["date"] = parse_date(data.get("date"))
    except BadRequestError:
        data["date"] = None
    if data["date"] is None:
        logger.warning(
            "expense_row_skipped",
            reason="missing or invalid date",
            expense_id=data.get("id"),
            date=row[1] if len(row) > 1 else None,
        )
        return None
    data["amount"] = _parse_optional_decimal(data.get("amount")) or Decimal("0")
    return Expense(**data)


def row_to_credit_history(row: Sequence[str]) -> CreditHistoryRecord:
    data = _row_to_dict(row, CREDIT_HISTORY_COLUMNS)
    for _, field in CREDIT_HISTORY_COLUMNS[3:11] + CREDIT_HISTORY_COLUMNS[13:]:
        if field in data:
            data[field] = _parse_optional_decimal(data[field])
    for field in ("term_months", "period_days"):
        data[field] = _parse_optional_int(data.get(field))
    if data.get("period_days") is None:
        data.pop("period_days")
    return CreditHistoryRecord(**data)


def row_to_user(row: Sequence[str]) -> UserAccount:
    return UserAccount(**_row_to_dict(row, USER_COLUMNS))


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Authenticates either with a tenant's OAuth access token or with
    the service account configured for the master spreadsheet, and
    provides retry logic for connecting.
    """

    def __init__(
        self,
        spreadsheet_id: str,
        access_token: Optional[str] = None,
        settings: Optional[GoogleSheetsSettings] = None,
    ):
        self._spreadsheet_id = spreadsheet_id
        self._access_token = access_token
        self._settings = settings or get_settings().google_sheets
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ConnectionError),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """Establish the gspread client."""
        if self._client is None:
            try:
                if self._access_token:
                    credentials = UserCredentials(token=self._access_token)
                else:
                    credentials = ServiceAccountCredentials.from_service_account_file(
                        self._settings.credentials_path,
                        scopes=SCOPES,
                    )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except (gspread.exceptions.GSpreadException, OSError) as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(f"Spreadsheet not found: {self._spreadsheet_id}")
            except gspread.exceptions.APIError as e:
                raise ConnectionError(f"Failed to open spreadsheet: {e}")
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: Sequence[tuple[str, str]],
    ) -> gspread.Worksheet:
        """Get or create a worksheet with the given column layout."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(_headers(columns), value_input_option="RAW")
        return sheet


class _SheetTable:
    """Typed access to one worksheet through its column table."""

    def __init__(
        self,
        client: GoogleSheetsClient,
        title: str,
        columns: Sequence[tuple[str, str]],
        parse: Callable[[Sequence[str]], object],
    ):
        self._client = client
        self.title = title
        self.columns = columns
        self._parse = parse

    def sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self.title, self.columns)

    def rows(self) -> list[tuple[int, list[str]]]:
        """Data rows as (sheet row number, cells), header validated."""
        try:
            values = self.sheet().get_all_values()
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to read sheet '{self.title}': {e}")
        if not values:
            return []
        validate_header(self.title, values[0], self.columns)
        return [
            (idx, row)
            for idx, row in enumerate(values[1:], start=2)
            if row and any(cell.strip() for cell in row)
        ]

    def records(self) -> list:
        parsed = (self._parse(row) for _, row in self.rows())
        return [record for record in parsed if record is not None]

    def append(self, model) -> None:
        try:
            self.sheet().append_row(_model_to_row(model, self.columns), value_input_option="RAW")
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to append to sheet '{self.title}': {e}")

    def write(self, row_number: int, model) -> None:
        cells = _model_to_row(model, self.columns)
        span = f"{rowcol_to_a1(row_number, 1)}:{rowcol_to_a1(row_number, len(cells))}"
        try:
            self.sheet().update(range_name=span, values=[cells], value_input_option="RAW")
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to update sheet '{self.title}': {e}")

    def delete(self, row_number: int) -> None:
        try:
            self.sheet().delete_rows(row_number)
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to delete from sheet '{self.title}': {e}")


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of one tenant's ledger.

    Row references handed out by find_credit_history_row are sheet
    row numbers (row 1 is the header).
    """

    def __init__(self, client: GoogleSheetsClient):
        self._client = client
        names = client.settings
        self._debts = _SheetTable(client, names.debts_sheet_name, DEBT_COLUMNS, row_to_debt)
        self._expenses = _SheetTable(
            client, names.expenses_sheet_name, EXPENSE_COLUMNS, row_to_expense
        )
        self._history = _SheetTable(
            client, names.credit_history_sheet_name, CREDIT_HISTORY_COLUMNS, row_to_credit_history
        )

    @classmethod
    def for_user(
        cls,
        user: UserAccount,
        access_token: Optional[str] = None,
        settings: Optional[GoogleSheetsSettings] = None,
    ) -> "GoogleSheetsLedgerStorage":
        """Open a tenant's spreadsheet with its OAuth token."""
        if not user.sheet_id:
            raise NotFoundError(f"User {user.id} has no linked spreadsheet")
        client = GoogleSheetsClient(
            spreadsheet_id=user.sheet_id,
            access_token=access_token or user.access_token,
            settings=settings,
        )
        return cls(client)

    def _find_debt_row(self, debt_id: str) -> Optional[tuple[int, list[str]]]:
        for row_number, row in self._debts.rows():
            if row[0].strip() == str(debt_id):
                return row_number, row
        return None

    async def list_debts(self) -> list[Debt]:
        return self._debts.records()

    async def add_debt(self, debt: Debt) -> Debt:
        if self._find_debt_row(debt.id) is not None:
            raise DuplicateError(f"Debt already exists: {debt.id}")
        self._debts.append(debt)
        return debt

    async def update_debt(self, update: DebtUpdate) -> Debt:
        found = self._find_debt_row(update.id)
        if found is None:
            raise NotFoundError(f"Debt not found: {update.id}")
        row_number, row = found
        debt = update.apply_to(row_to_debt(row))
        self._debts.write(row_number, debt)
        return debt

    async def delete_debt(self, debt_id: str) -> bool:
        found = self._find_debt_row(debt_id)
        if found is None:
            return False
        self._debts.delete(found[0])
        return True

    async def list_expenses(self) -> list[Expense]:
        return self._expenses.records()

    async def list_credit_history(self) -> list[CreditHistoryRecord]:
        return self._history.records()

    async def append_credit_history_record(self, record: CreditHistoryRecord) -> None:
        self._history.append(record)

    async def update_credit_history_record(
        self,
        row: int,
        record: CreditHistoryRecord,
    ) -> None:
        self._history.write(row, record)

    async def find_credit_history_row(
        self,
        debt_id: str,
        statement_date: date,
    ) -> Optional[int]:
        key = (str(debt_id), statement_date.isoformat())
        for row_number, row in self._history.rows():
            if len(row) > 1 and (row[0].strip(), row[1].strip()) == key:
                return row_number
        return None


class GoogleSheetsTenantDirectory(TenantDirectoryInterface):
    """Tenant directory kept in the master spreadsheet's Users sheet."""

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        settings: Optional[GoogleSheetsSettings] = None,
    ):
        if client is None:
            settings = settings or get_settings().google_sheets
            client = GoogleSheetsClient(
                spreadsheet_id=settings.users_spreadsheet_id,
                settings=settings,
            )
        self._users = _SheetTable(
            client, client.settings.users_sheet_name, USER_COLUMNS, row_to_user
        )

    async def list_users(self) -> list[UserAccount]:
        return self._users.records()

    async def update_user_tokens(
        self,
        google_id: str,
        access_token: str,
        refresh_token: Optional[str],
    ) -> None:
        for row_number, row in self._users.rows():
            user = row_to_user(row)
            if user.google_id == google_id:
                updated = user.model_copy(update={
                    "access_token": access_token,
                    "refresh_token": refresh_token or user.refresh_token,
                })
                self._users.write(row_number, updated)
                return
        raise NotFoundError(f"User not found: {google_id}")
