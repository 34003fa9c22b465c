# app/services/validation.py

"""
Валидация данных покупателя.

Данные проходят два этапа:
  1. форма   - BuyerForm (pydantic): наличие, длины, enum, числа;
  2. правила - межполевые проверки, каждая отдельной функцией возвращает
               карту ошибок; выполняются все, ошибки объединяются.
Правила запускаются только при валидной форме, им нужны типизированные значения.

Строки CSV сначала нормализуются (альтернативные написания, числа строками)
к виду JSON-формы и затем проверяются так же.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from app.models.enums import BHK, BHK_PROPERTY_TYPES, Source, Timeline
from app.schemas.buyer import BuyerForm
from app.utils.errors import FORM_ERRORS_KEY, ErrorMap, ValidationFailed, format_errors, merge_errors

Rule = Callable[[BuyerForm], ErrorMap]


# ────────────── Межполевые правила ──────────────
def check_bhk(form: BuyerForm) -> ErrorMap:
    if form.property_type in BHK_PROPERTY_TYPES and form.bhk is None:
        return {"bhk": ["BHK is required for Apartment and Villa property types"]}
    if form.property_type not in BHK_PROPERTY_TYPES and form.bhk is not None:
        return {"bhk": ["BHK must be empty unless property type is Apartment or Villa"]}
    return {}


def check_budget(form: BuyerForm) -> ErrorMap:
    if form.budget_min is not None and form.budget_max is not None:
        if form.budget_max < form.budget_min:
            return {"budgetMax": ["Maximum budget must be greater than or equal to minimum budget"]}
    return {}


BUYER_RULES: Sequence[Rule] = (check_bhk, check_budget)


def run_rules(form: BuyerForm, rules: Sequence[Rule] = BUYER_RULES) -> ErrorMap:
    errors: ErrorMap = {}
    for rule in rules:
        merge_errors(errors, rule(form))
    return errors


def check_buyer_form(data: Mapping[str, Any]) -> Tuple[Optional[BuyerForm], ErrorMap]:
    """Возвращает (form, {}) при успехе или (None, errors) при ошибке."""
    try:
        form = BuyerForm.model_validate(dict(data))
    except ValidationError as e:
        return None, format_errors(e.errors())

    errors = run_rules(form)
    if errors:
        return None, errors
    return form, {}


def validate_buyer_form(data: Mapping[str, Any]) -> BuyerForm:
    """Проверяет JSON-форму, при ошибках бросает ValidationFailed с ошибками полей."""
    if not isinstance(data, Mapping):
        raise ValidationFailed(details={FORM_ERRORS_KEY: ["Request body must be a JSON object"]})
    form, errors = check_buyer_form(data)
    if errors:
        raise ValidationFailed(details=errors)
    return form


# ────────────── Кодировки CSV ──────────────
CSV_TIMELINE = {
    "0-3m": Timeline.ZeroToThreeMonths,
    "3-6m": Timeline.ThreeToSixMonths,
    ">6m": Timeline.MoreThanSixMonths,
}

CSV_SOURCE = {
    "Walk-in": Source.WalkIn.value,
}

CSV_BHK = {
    "Studio": BHK.Studio,
    "1": BHK.One,
    "2": BHK.Two,
    "3": BHK.Three,
    "4": BHK.Four,
}


def map_csv_timeline(value: Optional[str]) -> Timeline:
    if value in CSV_TIMELINE:
        return CSV_TIMELINE[value]
    if value in Timeline.__members__:
        return Timeline(value)
    return Timeline.Exploring


def map_csv_source(value: Optional[str]) -> Optional[str]:
    return CSV_SOURCE.get(value, value) if value else value


def map_csv_bhk(value: Optional[str]) -> Optional[BHK]:
    if value in CSV_BHK:
        return CSV_BHK[value]
    if value in BHK.__members__:
        return BHK(value)
    return None


def parse_csv_int(value: Optional[str]) -> Any:
    """Пусто -> None; цифры -> int; остальное отклонит схема."""
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return value


def normalize_csv_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for key, value in row.items():
        if not key:
            continue
        if isinstance(value, str):
            value = value.strip()
        data[key.strip()] = value if value != "" else None

    data["timeline"] = map_csv_timeline(data.get("timeline"))
    data["source"] = map_csv_source(data.get("source"))
    data["bhk"] = map_csv_bhk(data.get("bhk"))
    data["budgetMin"] = parse_csv_int(data.get("budgetMin"))
    data["budgetMax"] = parse_csv_int(data.get("budgetMax"))
    return data


def check_csv_row(row: Mapping[str, Any]) -> Tuple[Optional[BuyerForm], ErrorMap]:
    return check_buyer_form(normalize_csv_row(row))
