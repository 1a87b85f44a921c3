import json
import unittest
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.db import models
from app.db.session import create_db_engine, get_db
from app.main import app


class PortalRpcTests(unittest.TestCase):
    def setUp(self):
        self.engine = create_db_engine("sqlite://")
        models.Base.metadata.create_all(bind=self.engine)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        def override_get_db():
            db = SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.pop(get_db, None)
        self.engine.dispose()

    def query(self, procedure, payload=None, headers=None):
        params = {"input": json.dumps(payload)} if payload is not None else None
        return self.client.get(f"/api/rpc/{procedure}", params=params, headers=headers)

    def mutate(self, procedure, payload=None, headers=None):
        return self.client.post(f"/api/rpc/{procedure}", json=payload, headers=headers)

    def data(self, res):
        self.assertEqual(res.status_code, 200, res.text)
        return res.json()["result"]["data"]

    def create_organization(self, name="Acme SARL"):
        return self.data(self.mutate("createOrganization", {"name": name}))

    def create_user(self, email="alice@firm.tn", role="Client-User"):
        return self.data(self.mutate("createUser", {"email": email, "name": "Alice", "role": role}))

    def test_healthcheck_procedure(self):
        data = self.data(self.query("healthcheck"))
        self.assertEqual(data["status"], "ok")
        self.assertIn("timestamp", data)

    def test_health_endpoint(self):
        res = self.client.get("/api/health")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json().get("status"), "ok")

    def test_unknown_procedure(self):
        res = self.query("deleteEverything")
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["error"]["code"], "NOT_FOUND")

    def test_wrong_method(self):
        res = self.mutate("getUsers")
        self.assertEqual(res.status_code, 405)
        self.assertEqual(res.json()["error"]["code"], "METHOD_NOT_SUPPORTED")
        res = self.query("createUser", {"email": "a@firm.tn", "name": "A", "role": "Guest"})
        self.assertEqual(res.status_code, 405)

    def test_invalid_input_is_bad_request(self):
        res = self.mutate("createUser", {"email": "not-an-email", "name": "A", "role": "Guest"})
        self.assertEqual(res.status_code, 400)
        body = res.json()["error"]
        self.assertEqual(body["code"], "BAD_REQUEST")
        self.assertTrue(body["details"])

        res = self.mutate("createUser", {"email": "a@firm.tn", "name": "A", "role": "Emperor"})
        self.assertEqual(res.status_code, 400)

    def test_malformed_query_input(self):
        res = self.client.get("/api/rpc/getUserById", params={"input": "{not json"})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["error"]["code"], "PARSE_ERROR")

    def test_user_roundtrip_and_missing_user(self):
        user = self.create_user()
        self.assertEqual(user["role"], "Client-User")
        fetched = self.data(self.query("getUserById", {"id": user["id"]}))
        self.assertEqual(fetched["email"], "alice@firm.tn")
        self.assertIsNone(self.data(self.query("getUserById", {"id": "missing"})))
        self.assertEqual(len(self.data(self.query("getUsers"))), 1)

    def test_duplicate_email_is_conflict(self):
        self.create_user()
        res = self.mutate("createUser", {"email": "alice@firm.tn", "name": "Other", "role": "Guest"})
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["error"]["code"], "CONFLICT")

    def test_request_lifecycle(self):
        organization = self.create_organization()
        request = self.data(
            self.mutate(
                "createRequest",
                {"organizationId": organization["id"], "title": "Payroll", "description": "Monthly payroll"},
            )
        )
        self.assertEqual(request["status"], "Open")

        updated = self.data(self.mutate("updateRequest", {"id": request["id"], "status": "Completed"}))
        self.assertEqual(updated["status"], "Completed")
        self.assertEqual(updated["title"], "Payroll")

        listed = self.data(self.query("getRequestsByOrganization", {"organizationId": organization["id"]}))
        self.assertEqual([r["id"] for r in listed], [request["id"]])

    def test_create_request_for_missing_organization(self):
        res = self.mutate("createRequest", {"organizationId": "nope", "title": "T", "description": "D"})
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["error"]["message"], "Organization nope not found")
        self.assertEqual(self.data(self.query("getRequests")), [])

    def test_update_missing_request(self):
        res = self.mutate("updateRequest", {"id": "ghost", "title": "x"})
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["error"]["message"], "Request with id ghost not found")

    def test_task_flow(self):
        organization = self.create_organization()
        request = self.data(
            self.mutate("createRequest", {"organizationId": organization["id"], "title": "T", "description": "D"})
        )
        task = self.data(
            self.mutate(
                "createTask",
                {"requestId": request["id"], "title": "Sign", "description": "Sign forms", "priority": "Low"},
            )
        )
        self.assertEqual(task["status"], "Not Started")
        self.assertIsNone(task["assigneeId"])

        updated = self.data(self.mutate("updateTask", {"id": task["id"], "status": "In Progress"}))
        self.assertEqual(updated["status"], "In Progress")
        self.assertEqual(updated["priority"], "Low")

        tasks = self.data(self.query("getTasksByRequest", {"requestId": request["id"]}))
        self.assertEqual(len(tasks), 1)

    def test_invoice_amount_and_summary(self):
        organization = self.create_organization()
        invoice = self.data(
            self.mutate(
                "createInvoice",
                {
                    "organizationId": organization["id"],
                    "invoiceNumber": "INV-2026-001",
                    "amount": 1500.50,
                    "currency": "TND",
                    "dueDate": "2026-12-31T00:00:00Z",
                    "issueDate": "2026-12-01T00:00:00Z",
                },
            )
        )
        self.assertEqual(invoice["amount"], 1500.5)
        self.assertEqual(invoice["paymentStatus"], "Draft")
        self.assertIsNone(invoice["paymentTransactionId"])

        self.data(self.mutate("updateInvoice", {"id": invoice["id"], "paymentStatus": "Sent"}))
        summary = self.data(self.query("getInvoiceSummaryByOrganization", {"organizationId": organization["id"]}))
        self.assertEqual(summary["totalOutstanding"], 1500.5)
        self.assertEqual(summary["totalPaid"], 0.0)
        self.assertEqual(summary["countByStatus"]["Sent"], 1)

    def test_create_invoice_rejects_payment_status(self):
        organization = self.create_organization()
        res = self.mutate(
            "createInvoice",
            {
                "organizationId": organization["id"],
                "invoiceNumber": "INV-1",
                "amount": 10,
                "currency": "TND",
                "dueDate": "2026-12-31T00:00:00Z",
                "issueDate": "2026-12-01T00:00:00Z",
                "paymentStatus": "Paid",
            },
        )
        self.assertEqual(res.status_code, 400)

    def test_document_for_organization(self):
        organization = self.create_organization()
        user = self.create_user()
        document = self.data(
            self.mutate(
                "createDocument",
                {
                    "organizationId": organization["id"],
                    "uploaderId": user["id"],
                    "fileName": "balance.pdf",
                    "fileUrl": "https://files.example.org/balance.pdf",
                    "mimeType": "application/pdf",
                    "fileSize": 1024,
                },
            )
        )
        self.assertIsNone(document["requestId"])
        listed = self.data(self.query("getDocumentsByOrganization", {"organizationId": organization["id"]}))
        self.assertEqual([d["fileName"] for d in listed], ["balance.pdf"])

    def test_members(self):
        organization = self.create_organization()
        user = self.create_user()
        member = self.data(
            self.mutate("addOrganizationMember", {"organizationId": organization["id"], "userId": user["id"]})
        )
        self.assertEqual(member["role"], "member")
        members = self.data(self.query("getMembersByOrganization", {"organizationId": organization["id"]}))
        self.assertEqual(len(members), 1)

    def test_ask_assistant_uses_context_headers(self):
        organization = self.create_organization()
        user = self.create_user()
        headers = {"X-User-Id": user["id"], "X-Organization-Id": organization["id"]}
        entry = self.data(self.mutate("askAssistant", {"query": "How do I register a company?"}, headers=headers))
        self.assertIn("Business Formation in Tunisia", entry["response"])
        self.assertFalse(entry["isGuest"])
        self.assertEqual(entry["organizationId"], organization["id"])

        history = self.data(self.query("getChatHistoryByUser", {"userId": user["id"]}))
        self.assertEqual([h["id"] for h in history], [entry["id"]])

    def test_ask_assistant_without_user(self):
        res = self.mutate("askAssistant", {"query": "hello"})
        self.assertEqual(res.status_code, 404)

    def test_resource_templates(self):
        self.data(
            self.mutate(
                "createResourceTemplate",
                {"name": "NDA", "type": "document_template", "content": "...", "category": "Legal"},
            )
        )
        self.assertEqual(len(self.data(self.query("getResourceTemplates"))), 1)
        calculators = self.data(self.query("getResourceTemplatesByType", {"type": "calculator"}))
        self.assertEqual(calculators, [])

    def test_calculators(self):
        vat = self.data(self.query("calculateVat", {"amount": 1000, "rate": 19}))
        self.assertEqual(vat, {"vat": 190.0, "totalWithVat": 1190.0})
        loan = self.data(self.query("calculateLoanPayment", {"principal": 10000, "annualRate": 5, "years": 10}))
        self.assertEqual(loan["monthlyPayment"], 106.07)
        self.assertEqual(loan["totalInterest"], 2727.86)

    def test_datetimes_round_trip_as_utc_instants(self):
        organization = self.create_organization()
        invoice = self.data(
            self.mutate(
                "createInvoice",
                {
                    "organizationId": organization["id"],
                    "invoiceNumber": "INV-TZ-1",
                    "amount": 120,
                    "currency": "TND",
                    "dueDate": "2026-12-31T00:00:00+01:00",
                    "issueDate": "2026-12-01T09:30:00-05:00",
                },
            )
        )
        self.assertEqual(_instant(invoice["dueDate"]), datetime(2026, 12, 30, 23, 0, tzinfo=timezone.utc))
        self.assertEqual(_instant(invoice["issueDate"]), datetime(2026, 12, 1, 14, 30, tzinfo=timezone.utc))
        self.assertEqual(_instant(invoice["createdAt"]).utcoffset(), timedelta(0))
        self.assertEqual(_instant(invoice["updatedAt"]).utcoffset(), timedelta(0))

        listed = self.data(self.query("getInvoicesByOrganization", {"organizationId": organization["id"]}))
        self.assertEqual(_instant(listed[0]["dueDate"]), datetime(2026, 12, 30, 23, 0, tzinfo=timezone.utc))

    def test_malformed_mutation_body(self):
        res = self.client.post(
            "/api/rpc/createOrganization", content=b"{bad", headers={"Content-Type": "application/json"}
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["error"]["code"], "PARSE_ERROR")
        self.assertEqual(self.data(self.query("getOrganizations")), [])


def _instant(value):
    # pydantic renders UTC as a trailing Z
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
