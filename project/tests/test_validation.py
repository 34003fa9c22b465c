# tests/test_validation.py

import pytest

from app.models.enums import BHK, Source, Timeline
from app.schemas.buyer import normalize_tags
from app.services.validation import (
    check_buyer_form,
    check_csv_row,
    map_csv_bhk,
    map_csv_timeline,
    normalize_csv_row,
    validate_buyer_form,
)
from app.utils.errors import ValidationFailed


def form_data(**overrides):
    data = {
        "fullName": "Asha Verma",
        "phone": "9876543210",
        "city": "Mohali",
        "propertyType": "Plot",
        "purpose": "Buy",
        "timeline": "Exploring",
        "source": "Call",
    }
    data.update(overrides)
    return data


def test_minimal_form_is_valid():
    form, errors = check_buyer_form(form_data())
    assert errors == {}
    assert form.full_name == "Asha Verma"
    assert form.bhk is None
    assert form.status is None
    assert form.tags == ""


@pytest.mark.parametrize("property_type", ["Apartment", "Villa"])
def test_bhk_required_for_apartment_and_villa(property_type):
    form, errors = check_buyer_form(form_data(propertyType=property_type))
    assert form is None
    assert "bhk" in errors

    form, errors = check_buyer_form(form_data(propertyType=property_type, bhk="Two"))
    assert errors == {}
    assert form.bhk == BHK.Two


def test_bhk_rejected_for_other_property_types():
    form, errors = check_buyer_form(form_data(propertyType="Office", bhk="One"))
    assert form is None
    assert list(errors) == ["bhk"]


def test_budget_max_below_min_rejected():
    _, errors = check_buyer_form(form_data(budgetMin=500000, budgetMax=400000))
    assert list(errors) == ["budgetMax"]


def test_budget_equal_accepted():
    form, errors = check_buyer_form(form_data(budgetMin=500000, budgetMax=500000))
    assert errors == {}
    assert form.budget_min == form.budget_max == 500000


def test_budget_must_be_positive():
    _, errors = check_buyer_form(form_data(budgetMin=0))
    assert "budgetMin" in errors


def test_shape_errors_are_keyed_by_field():
    _, errors = check_buyer_form(form_data(fullName="A", phone="123", email="not-an-email", city="Delhi"))
    assert errors["fullName"] == ["Name must be at least 2 characters"]
    assert errors["phone"] == ["Phone must be at least 10 digits"]
    assert errors["email"] == ["Invalid email address"]
    assert "city" in errors


def test_notes_length_limit():
    _, errors = check_buyer_form(form_data(notes="x" * 1001))
    assert errors["notes"] == ["Notes cannot exceed 1000 characters"]


def test_blank_optional_values_become_none():
    form, errors = check_buyer_form(form_data(email="", notes="  ", budgetMin="", status=""))
    assert errors == {}
    assert form.email is None
    assert form.notes is None
    assert form.budget_min is None
    assert form.status is None


def test_validate_buyer_form_raises_with_details():
    with pytest.raises(ValidationFailed) as exc:
        validate_buyer_form(form_data(propertyType="Apartment"))
    assert exc.value.status_code == 400
    assert "bhk" in exc.value.details


def test_validate_buyer_form_rejects_non_object():
    with pytest.raises(ValidationFailed):
        validate_buyer_form(["not", "a", "form"])


# ────────────── tags ──────────────
@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", ""),
        ("a, b,,a ", "a,b"),
        (" premium ,garden,premium", "premium,garden"),
        (",,,", ""),
    ],
)
def test_normalize_tags(raw, expected):
    assert normalize_tags(raw) == expected
    assert normalize_tags(normalize_tags(raw)) == normalize_tags(raw)
    if expected:
        assert all(expected.split(","))


def test_form_tags_are_canonical():
    form, _ = check_buyer_form(form_data(tags=" hot, hot ,  ready "))
    assert form.tags == "hot,ready"


# ────────────── CSV rows ──────────────
def test_csv_timeline_mapping():
    assert map_csv_timeline("0-3m") == Timeline.ZeroToThreeMonths
    assert map_csv_timeline("3-6m") == Timeline.ThreeToSixMonths
    assert map_csv_timeline(">6m") == Timeline.MoreThanSixMonths
    assert map_csv_timeline("ThreeToSixMonths") == Timeline.ThreeToSixMonths
    assert map_csv_timeline("someday") == Timeline.Exploring
    assert map_csv_timeline(None) == Timeline.Exploring


def test_csv_bhk_mapping():
    assert map_csv_bhk("Studio") == BHK.Studio
    assert map_csv_bhk("3") == BHK.Three
    assert map_csv_bhk("Four") == BHK.Four
    assert map_csv_bhk("7") is None
    assert map_csv_bhk(None) is None


def test_normalize_csv_row():
    data = normalize_csv_row({
        "fullName": "  Ravi Kumar ",
        "email": "",
        "bhk": "2",
        "timeline": "0-3m",
        "source": "Walk-in",
        "budgetMin": "2000000",
        "budgetMax": "",
    })
    assert data["fullName"] == "Ravi Kumar"
    assert data["email"] is None
    assert data["bhk"] == BHK.Two
    assert data["timeline"] == Timeline.ZeroToThreeMonths
    assert data["source"] == Source.WalkIn.value
    assert data["budgetMin"] == 2000000
    assert data["budgetMax"] is None


def test_csv_row_with_bad_number_is_reported():
    _, errors = check_csv_row({
        "fullName": "Ravi Kumar",
        "phone": "7654321098",
        "city": "Zirakpur",
        "propertyType": "Plot",
        "purpose": "Buy",
        "budgetMin": "two million",
        "timeline": ">6m",
        "source": "Walk-in",
    })
    assert "budgetMin" in errors


def test_csv_row_valid():
    form, errors = check_csv_row({
        "fullName": "Ravi Kumar",
        "phone": "7654321098",
        "city": "Zirakpur",
        "propertyType": "Apartment",
        "bhk": "Studio",
        "purpose": "Rent",
        "timeline": "3-6m",
        "source": "Walk-in",
        "tags": "investor, investor",
    })
    assert errors == {}
    assert form.source == Source.WalkIn
    assert form.tags == "investor"
