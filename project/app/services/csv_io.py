# app/services/csv_io.py

"""
Импорт и экспорт покупателей в CSV.

Импорт по принципу "всё или ничего": сначала проверяются все строки,
и при ошибке хотя бы в одной отклоняется весь файл; иначе все строки
вставляются в одной транзакции.
"""

import csv
import enum
import io
from typing import Any, Dict, Iterable, List

from fastapi import Request

from app.config import settings
from app.models.buyer import Buyer
from app.models.enums import Status
from app.models.user import User
from app.services.history import imported_payload, record_history
from app.services.validation import check_csv_row
from app.utils.errors import CsvRowsInvalid, ValidationFailed

CSV_COLUMNS = [
    "fullName",
    "email",
    "phone",
    "city",
    "propertyType",
    "bhk",
    "purpose",
    "budgetMin",
    "budgetMax",
    "timeline",
    "source",
    "notes",
    "tags",
    "status",
]


def parse_csv(content: bytes) -> List[Dict[str, Any]]:
    """Декодирует загруженный файл в строки с ключами из заголовка; пустые строки пропускаются."""
    try:
        text = content.decode("utf-8-sig")
        reader = csv.DictReader(io.StringIO(text, newline=""))
        if not reader.fieldnames:
            raise ValidationFailed(details="CSV file must have a header row")
        rows = [
            {key: value for key, value in row.items() if key}
            for row in reader
            if any(isinstance(value, str) and value.strip() for value in row.values())
        ]
    except (UnicodeDecodeError, csv.Error) as e:
        raise ValidationFailed(details="Invalid CSV format") from e
    return rows


# ────────────── IMPORT ──────────────
async def import_buyers_service(content: bytes, user: User, request: Request) -> int:
    db = request.state.db
    log = request.app.state.log

    rows = parse_csv(content)
    if len(rows) > settings.CSV_MAX_ROWS:
        await log.log_warning("buyer_csv", "Импорт отклонён: слишком много строк", {"rows": len(rows)})
        raise ValidationFailed(details=f"Maximum {settings.CSV_MAX_ROWS} rows allowed")

    forms = []
    invalid_rows = []
    for idx, row in enumerate(rows):
        form, errors = check_csv_row(row)
        if errors:
            invalid_rows.append({"row": idx + 1, "errors": errors})
        else:
            forms.append((row, form))

    if invalid_rows:
        await log.log_warning("buyer_csv", "Импорт отклонён: есть невалидные строки", {"invalid": len(invalid_rows)})
        raise CsvRowsInvalid(invalid_rows)

    try:
        for row, form in forms:
            values = form.field_values()
            values["status"] = form.status or Status.New
            buyer = Buyer(owner_id=user.id, **values)
            db.add(buyer)
            record_history(db, buyer, user.id, imported_payload(row))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await log.log_info("buyer_csv", "Покупатели импортированы", {"count": len(forms), "user_id": user.id})
    return len(forms)


# ────────────── EXPORT ──────────────
def csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        return value.value
    return str(value)


def export_buyers_csv(buyers: Iterable[Buyer]) -> str:
    """Каждое поле, включая заголовок, в двойных кавычках."""
    out = io.StringIO()
    writer = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for buyer in buyers:
        writer.writerow([
            csv_value(buyer.full_name),
            csv_value(buyer.email),
            csv_value(buyer.phone),
            csv_value(buyer.city),
            csv_value(buyer.property_type),
            csv_value(buyer.bhk),
            csv_value(buyer.purpose),
            csv_value(buyer.budget_min),
            csv_value(buyer.budget_max),
            csv_value(buyer.timeline),
            csv_value(buyer.source),
            csv_value(buyer.notes),
            csv_value(buyer.tags),
            csv_value(buyer.status),
        ])
    return out.getvalue()
