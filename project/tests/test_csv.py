# tests/test_csv.py

import csv
import io

from conftest import buyer_payload

from app.services import csv_io
from app.services.csv_io import CSV_COLUMNS, parse_csv

HEADER = ",".join(CSV_COLUMNS)


def upload(client, user, content: str):
    return client.post(
        "/buyers/csv",
        files={"file": ("buyers.csv", content.encode("utf-8"), "text/csv")},
        headers=user.headers,
    )


def list_names(client, user, **params):
    body = client.get("/buyers", params={"sortBy": "fullName", "sortOrder": "asc", **params}, headers=user.headers).json()
    return [b["fullName"] for b in body["buyers"]]


VALID_ROWS = [
    "Asha Verma,asha@example.com,9876500001,Mohali,Apartment,2,Buy,3000000,4000000,0-3m,Website,,first home,New",
    "Ravi Kumar,,7654321098,Zirakpur,Plot,,Buy,2000000,5000000,>6m,Walk-in,,investor,",
    "Neha Gill,neha@example.com,9876500003,Panchkula,Office,,Rent,,,3-6m,Referral,\"Needs parking, lift\",,Contacted",
]


def test_parse_csv_skips_blank_lines():
    rows = parse_csv(f"\ufeff{HEADER}\n{VALID_ROWS[0]}\n\n,,,,,,,,,,,,,\n{VALID_ROWS[1]}\n".encode("utf-8"))
    assert len(rows) == 2
    assert rows[0]["fullName"] == "Asha Verma"


def test_import_all_valid_rows(client, owner):
    resp = upload(client, owner, "\n".join([HEADER, *VALID_ROWS]) + "\n")
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"success": True, "message": "Successfully imported 3 buyers", "count": 3}

    body = client.get("/buyers", params={"search": "Ravi"}, headers=owner.headers).json()
    ravi = body["buyers"][0]
    assert ravi["ownerId"] == owner.id
    assert ravi["source"] == "WalkIn"
    assert ravi["timeline"] == "MoreThanSixMonths"
    assert ravi["status"] == "New"
    assert ravi["email"] is None

    detail = client.get(f"/buyers/{ravi['id']}", headers=owner.headers).json()
    assert len(detail["history"]) == 1
    assert detail["history"][0]["diff"]["action"] == "created"
    assert detail["history"][0]["diff"]["source"] == "bulk_import"

    neha = client.get("/buyers", params={"search": "Neha"}, headers=owner.headers).json()["buyers"][0]
    assert neha["notes"] == "Needs parking, lift"
    assert neha["status"] == "Contacted"
    assert neha["budgetMin"] is None


def test_one_invalid_row_rejects_whole_file(client, owner):
    invalid = "Bad Apartment,,9876500009,Mohali,Apartment,,Buy,,,0-3m,Website,,,"
    rows = [VALID_ROWS[0], invalid, VALID_ROWS[1], VALID_ROWS[2]]
    resp = upload(client, owner, "\n".join([HEADER, *rows]))
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Validation errors in CSV data"
    assert len(body["invalidRows"]) == 1
    assert body["invalidRows"][0]["row"] == 2
    assert "bhk" in body["invalidRows"][0]["errors"]

    assert list_names(client, owner) == []


def test_every_invalid_row_is_reported(client, owner):
    rows = [
        "X,,123,Mohali,Plot,,Buy,,,0-3m,Website,,,",
        VALID_ROWS[1],
        "Budget Flip,,9876500010,Mohali,Plot,,Buy,500,100,0-3m,Website,,,",
    ]
    body = upload(client, owner, "\n".join([HEADER, *rows])).json()
    assert [r["row"] for r in body["invalidRows"]] == [1, 3]
    assert set(body["invalidRows"][0]["errors"]) == {"fullName", "phone"}
    assert list(body["invalidRows"][1]["errors"]) == ["budgetMax"]


def test_failure_midway_rolls_back_whole_file(client, owner, monkeypatch):
    written = []
    record_history = csv_io.record_history

    def failing_record_history(db, buyer, user_id, payload):
        written.append(buyer.full_name)
        if len(written) == 3:
            raise RuntimeError("disk full")
        return record_history(db, buyer, user_id, payload)

    monkeypatch.setattr(csv_io, "record_history", failing_record_history)
    resp = upload(client, owner, "\n".join([HEADER, *VALID_ROWS]))
    assert resp.status_code == 500
    assert resp.json()["error"] == "Internal server error"
    assert len(written) == 3

    assert list_names(client, owner) == []


def test_too_many_rows(client, owner):
    rows = [f"Buyer {i:03d},,98765{i:05d},Mohali,Plot,,Buy,,,0-3m,Website,,," for i in range(201)]
    resp = upload(client, owner, "\n".join([HEADER, *rows]))
    assert resp.status_code == 400
    assert resp.json()["details"] == "Maximum 200 rows allowed"
    assert list_names(client, owner) == []


def test_exactly_max_rows_is_accepted(client, owner):
    rows = [f"Buyer {i:03d},,98765{i:05d},Mohali,Plot,,Buy,,,0-3m,Website,,," for i in range(200)]
    resp = upload(client, owner, "\n".join([HEADER, *rows]))
    assert resp.status_code == 200
    assert resp.json()["count"] == 200


def test_header_only_imports_nothing(client, owner):
    resp = upload(client, owner, HEADER + "\n")
    assert resp.status_code == 200
    assert resp.json()["count"] == 0


def test_missing_file(client, owner):
    resp = client.post("/buyers/csv", headers=owner.headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "CSV file is required"


def test_undecodable_file(client, owner):
    resp = client.post(
        "/buyers/csv",
        files={"file": ("buyers.csv", b"\xff\xfe\xfa not utf-8", "text/csv")},
        headers=owner.headers,
    )
    assert resp.status_code == 400
    assert resp.json()["details"] == "Invalid CSV format"


def test_import_requires_authentication(client):
    resp = client.post("/buyers/csv", files={"file": ("buyers.csv", HEADER.encode(), "text/csv")})
    assert resp.status_code == 401


# ────────────── export ──────────────
def test_export_quotes_every_field(client, owner):
    client.post(
        "/buyers",
        json=buyer_payload(notes='He said "call after 6"', tags="hot, ready"),
        headers=owner.headers,
    )
    resp = client.get("/buyers/csv", headers=owner.headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attachment" in resp.headers["content-disposition"]
    assert "buyers-export-" in resp.headers["content-disposition"]

    lines = resp.text.splitlines()
    assert lines[0] == ",".join(f'"{c}"' for c in CSV_COLUMNS)
    assert '"He said ""call after 6"""' in lines[1]
    assert '"hot,ready"' in lines[1]
    # empty bhk is an empty quoted field
    row = next(csv.DictReader(io.StringIO(resp.text)))
    assert row["bhk"] == ""
    assert row["budgetMin"] == "2000000"


def test_export_applies_filters_without_paging(client, owner):
    for i in range(3):
        client.post("/buyers", json=buyer_payload(fullName=f"Mohali {i}", city="Mohali"), headers=owner.headers)
    client.post("/buyers", json=buyer_payload(fullName="Elsewhere", city="Other"), headers=owner.headers)

    resp = client.get("/buyers/csv", params={"city": "Mohali", "limit": 1}, headers=owner.headers)
    rows = list(csv.DictReader(io.StringIO(resp.text)))
    assert sorted(r["fullName"] for r in rows) == ["Mohali 0", "Mohali 1", "Mohali 2"]


def test_export_of_empty_set_has_header(client, owner):
    resp = client.get("/buyers/csv", headers=owner.headers)
    assert resp.text.splitlines() == [",".join(f'"{c}"' for c in CSV_COLUMNS)]


def test_export_then_import_reproduces_fields(client, owner, other):
    upload(client, owner, "\n".join([HEADER, *VALID_ROWS]))
    exported = client.get("/buyers/csv", headers=owner.headers).text

    resp = upload(client, other, exported)
    assert resp.status_code == 200, resp.text
    assert resp.json()["count"] == 3

    fields = list(CSV_COLUMNS)
    buyers = client.get("/buyers", params={"sortBy": "fullName", "limit": 100}, headers=owner.headers).json()["buyers"]
    by_owner = {}
    for b in buyers:
        by_owner.setdefault(b["ownerId"], []).append({k: b[k] for k in fields})
    original = sorted(by_owner[owner.id], key=lambda b: b["fullName"])
    copy = sorted(by_owner[other.id], key=lambda b: b["fullName"])
    assert original == copy
