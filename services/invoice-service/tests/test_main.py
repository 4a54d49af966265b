from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.config import Settings, get_settings
from app.main import app, get_store


AUTH_SECRET_KEY = "test-secret-key"
AUTH_ALGORITHM = "HS256"
TEST_USER_ID = "agent@brothersholidays.example"

client = TestClient(app)


def get_auth_headers(user_id: str = TEST_USER_ID) -> dict:
    token = jwt.encode({"sub": user_id}, AUTH_SECRET_KEY, algorithm=AUTH_ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


def due_in(days: int) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


@pytest.fixture(autouse=True)
def api_store(store):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: Settings(
        AUTH_SECRET_KEY=AUTH_SECRET_KEY, INVOICE_WEBHOOK_URL=None
    )
    yield store
    app.dependency_overrides.clear()


def generate_invoice():
    response = client.post(
        "/invoices/from-booking",
        headers=get_auth_headers(),
        json={"bookingId": "booking-1", "bookingReference": "BH-1001", "dueDate": due_in(30)},
    )
    assert response.status_code == 201
    return response.json()["invoice"]


def direct_invoice_payload(**overrides):
    payload = {
        "type": "custom",
        "customerName": "Sam Rivers",
        "customerEmail": "Sam@Example.com",
        "issueDate": date.today().isoformat(),
        "dueDate": due_in(14),
        "lineItems": [
            {"description": "Visa handling", "quantity": 2, "unitPrice": 45, "totalPrice": 90},
            {"description": "Insurance", "quantity": 1, "unitPrice": 60, "totalPrice": 60, "taxable": False},
        ],
        "taxRate": 10,
        "discountAmount": 5,
    }
    payload.update(overrides)
    return payload


def test_health_check_needs_no_token():
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_requests_without_token_are_rejected():
    assert client.get("/invoices").status_code == 401
    assert client.get("/invoices", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_generate_and_fetch_invoice():
    invoice = generate_invoice()

    assert invoice["status"] == "draft"
    assert invoice["displayStatus"] == "draft"
    assert invoice["createdBy"] == TEST_USER_ID
    assert invoice["totalAmount"] == 3000
    assert invoice["lineItems"][0]["description"] == "Travel Package: Bali Escape"

    response = client.get(f"/invoices/{invoice['$id']}", headers=get_auth_headers())
    assert response.status_code == 200
    assert response.json()["invoice"]["invoiceNumber"] == invoice["invoiceNumber"]


def test_generating_twice_returns_conflict_with_existing_invoice():
    invoice = generate_invoice()

    response = client.post(
        "/invoices/from-booking",
        headers=get_auth_headers(),
        json={"bookingId": "booking-1", "bookingReference": "BH-1001", "dueDate": due_in(30)},
    )

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Invoice already exists for this booking"
    assert body["existingInvoice"]["$id"] == invoice["$id"]


def test_generate_with_past_due_date():
    response = client.post(
        "/invoices/from-booking",
        headers=get_auth_headers(),
        json={"bookingId": "booking-1", "bookingReference": "BH-1001", "dueDate": due_in(0)},
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Due date must be in the future"}


def test_generate_for_unknown_booking():
    response = client.post(
        "/invoices/from-booking",
        headers=get_auth_headers(),
        json={"bookingId": "missing", "bookingReference": "BH-1001", "dueDate": due_in(30)},
    )

    assert response.status_code == 404
    assert response.json()["error"] == "Booking not found"


def test_create_invoice_directly():
    response = client.post("/invoices", headers=get_auth_headers(), json=direct_invoice_payload())

    assert response.status_code == 201
    invoice = response.json()["invoice"]
    assert invoice["customerEmail"] == "sam@example.com"
    assert invoice["subtotal"] == 150
    assert invoice["taxAmount"] == 9
    assert invoice["totalAmount"] == 154
    assert invoice["balancedue"] == 154
    assert invoice["companyName"] == "Brothers Holidays"
    assert invoice["invoiceNumber"].startswith("INV-")


def test_responses_carry_display_fields():
    response = client.post(
        "/invoices",
        headers=get_auth_headers(),
        json=direct_invoice_payload(invoiceNumber="INV-202506-00000009", currency="EUR", discountAmount=0.125),
    )

    invoice = response.json()["invoice"]
    assert invoice["totalAmount"] == 158.88
    assert invoice["formattedTotal"] == "€158.88"
    assert invoice["formattedBalance"] == "€158.88"
    assert invoice["pdfFilename"] == "invoice_INV-202506-00000009_sam_rivers.pdf"

    fetched = client.get(f"/invoices/{invoice['$id']}", headers=get_auth_headers()).json()["invoice"]
    assert fetched["formattedTotal"] == "€158.88"


def test_create_invoice_validation_errors():
    response = client.post(
        "/invoices",
        headers=get_auth_headers(),
        json=direct_invoice_payload(customerEmail="nope", lineItems=[]),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert body["details"] == ["Invalid customer email format", "At least one line item is required"]


def test_create_invoice_with_duplicate_number():
    payload = direct_invoice_payload(invoiceNumber="INV-202506-00000001")
    assert client.post("/invoices", headers=get_auth_headers(), json=payload).status_code == 201

    response = client.post("/invoices", headers=get_auth_headers(), json=payload)

    assert response.status_code == 409
    assert response.json()["error"] == "Invoice number already exists"


def test_malformed_request_body():
    response = client.post("/invoices", headers=get_auth_headers(), json={"taxRate": "lots"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request data"


def test_payment_lifecycle():
    invoice = generate_invoice()
    url = f"/invoices/{invoice['$id']}"

    sent = client.put(url, headers=get_auth_headers(), json={"status": "sent"})
    assert sent.status_code == 200
    assert sent.json()["invoice"]["status"] == "sent"

    partial = client.put(url, headers=get_auth_headers("cashier"), json={"paidAmount": 1000})
    body = partial.json()["invoice"]
    assert body["status"] == "partial"
    assert body["balancedue"] == 2000
    assert body["lastModifiedBy"] == "cashier"

    paid = client.put(url, headers=get_auth_headers(), json={"paidAmount": 3000})
    body = paid.json()["invoice"]
    assert body["status"] == "paid"
    assert body["balancedue"] == 0
    assert body["paidDate"] == date.today().isoformat()

    locked = client.put(url, headers=get_auth_headers(), json={"notes": "too late"})
    assert locked.status_code == 400
    assert locked.json()["error"] == "Cannot update paid invoice"


def test_update_with_invalid_line_items():
    invoice = generate_invoice()

    response = client.put(
        f"/invoices/{invoice['$id']}",
        headers=get_auth_headers(),
        json={"lineItems": [{"description": "Flight", "quantity": 2, "unitPrice": 10, "totalPrice": 25}]},
    )

    assert response.status_code == 400
    assert response.json()["details"] == ["Line item 1: Total price doesn't match quantity × unit price"]
    unchanged = client.get(f"/invoices/{invoice['$id']}", headers=get_auth_headers()).json()["invoice"]
    assert unchanged["totalAmount"] == 3000


def test_cancel_invoice():
    invoice = generate_invoice()
    url = f"/invoices/{invoice['$id']}"

    response = client.delete(url, headers=get_auth_headers())
    assert response.status_code == 200
    assert response.json()["invoice"]["status"] == "cancelled"

    again = client.delete(url, headers=get_auth_headers())
    assert again.status_code == 400
    assert again.json()["error"] == "Invoice is already cancelled"

    edit = client.put(url, headers=get_auth_headers(), json={"notes": "revive"})
    assert edit.json()["error"] == "Cannot update cancelled invoice"


def test_missing_invoice():
    for response in (
        client.get("/invoices/nope", headers=get_auth_headers()),
        client.put("/invoices/nope", headers=get_auth_headers(), json={"notes": "x"}),
        client.delete("/invoices/nope", headers=get_auth_headers()),
    ):
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Invoice not found"}


def test_list_invoices_with_filters_and_paging():
    generate_invoice()
    for index in range(3):
        payload = direct_invoice_payload(customerName=f"Customer {index}", invoiceNumber=f"INV-202506-0000000{index}")
        client.post("/invoices", headers=get_auth_headers(), json=payload)

    everything = client.get("/invoices", headers=get_auth_headers()).json()
    assert everything["total"] == 4
    assert everything["hasMore"] is False

    first_page = client.get("/invoices", headers=get_auth_headers(), params={"limit": 2, "sortBy": "customerName", "sortOrder": "asc"}).json()
    assert [inv["customerName"] for inv in first_page["invoices"]] == ["Customer 0", "Customer 1"]
    assert first_page["hasMore"] is True

    travel = client.get("/invoices", headers=get_auth_headers(), params={"type": "travel"}).json()
    assert [inv["customerName"] for inv in travel["invoices"]] == ["Jane Traveller"]

    search = client.get("/invoices", headers=get_auth_headers(), params={"search": "customer 2"}).json()
    assert [inv["invoiceNumber"] for inv in search["invoices"]] == ["INV-202506-00000002"]

    big = client.get("/invoices", headers=get_auth_headers(), params={"amountMin": 1000}).json()
    assert big["total"] == 1


def test_invoice_stats():
    invoice = generate_invoice()
    client.put(f"/invoices/{invoice['$id']}", headers=get_auth_headers(), json={"status": "sent"})
    client.post("/invoices", headers=get_auth_headers(), json=direct_invoice_payload())

    response = client.get("/invoices/stats", headers=get_auth_headers())

    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats["totalInvoices"] == 2
    assert stats["totalAmount"] == 3154
    assert stats["sentCount"] == 1
    assert stats["draftCount"] == 1
    assert stats["averageAmount"] == 1577
    assert stats["currency"] == "USD"
