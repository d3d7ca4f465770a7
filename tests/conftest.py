import os
from types import SimpleNamespace

import pytest
import stripe

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("LOG_JSON", "false")


class UniqueViolation(Exception):
    """Mimics the PostgREST error raised for a duplicate key."""

    def __init__(self, message="duplicate key value violates unique constraint"):
        super().__init__(message)
        self.code = "23505"


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table_name = table
        self.filters = []
        self._op = "select"
        self._payload = None
        self._order = None
        self._limit = None

    def select(self, *columns):
        self._op = "select"
        return self

    def insert(self, payload):
        self._op = "insert"
        self._payload = payload
        return self

    def update(self, payload):
        self._op = "update"
        self._payload = payload
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and str(row.get(column)) >= str(value))
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self):
        error = self.db.failures.get(self.table_name)
        if error is not None:
            raise error
        self.db.calls.append((self.table_name, self._op, self._payload))
        rows = self.db.tables.setdefault(self.table_name, [])

        if self._op == "insert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            unique = self.db.unique_keys.get(self.table_name)
            created = []
            for item in payload:
                row = dict(item)
                if unique and any(existing.get(unique) == row.get(unique) for existing in rows):
                    raise UniqueViolation()
                row.setdefault("id", f"{self.table_name}-{len(rows) + 1}")
                rows.append(row)
                created.append(dict(row))
            return SimpleNamespace(data=created)

        matched = [row for row in rows if all(f(row) for f in self.filters)]
        if self._op == "update":
            for row in matched:
                row.update(self._payload)
            return SimpleNamespace(data=[dict(row) for row in matched])

        if self._order:
            column, desc = self._order
            matched = sorted(matched, key=lambda row: str(row.get(column) or ""), reverse=desc)
        if self._limit is not None:
            matched = matched[:self._limit]
        return SimpleNamespace(data=[dict(row) for row in matched])


class FakeRpc:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.rpc_calls.append((self.name, self.params))
        handler = self.db.rpc_handlers.get(self.name)
        if handler is None:
            raise Exception(f"function {self.name} does not exist")
        return SimpleNamespace(data=handler(self.params))


class FakeAuth:
    def __init__(self):
        self.users = {}

    def get_user(self, token):
        user = self.users.get(token)
        if user is None:
            raise Exception("invalid JWT")
        return SimpleNamespace(user=user)


class FakeSupabase:
    """In-memory stand-in for the supabase-py query builder."""

    def __init__(self):
        self.tables = {}
        self.unique_keys = {"booking_attempts": "idempotency_key"}
        self.failures = {}
        self.rpc_handlers = {}
        self.calls = []
        self.rpc_calls = []
        self.auth = FakeAuth()

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        return FakeRpc(self, name, params or {})

    def add_admin(self, token="admin-token", user_id="admin-1"):
        self.auth.users[token] = SimpleNamespace(id=user_id, email="admin@njreap.com")
        self.tables.setdefault("profiles", []).append({"id": user_id, "role": "admin"})
        return token


class FakeResend:
    """Records Emails.send calls the way the resend module exposes them."""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail
        self.Emails = self

    def send(self, params):
        if self.fail:
            raise Exception("resend unavailable")
        self.sent.append(params)
        return {"id": f"email-{len(self.sent)}"}


class FakeStripeResource:
    def __init__(self, owner, name):
        self.owner = owner
        self.name = name

    def __getattr__(self, method):
        def call(*args, **kwargs):
            self.owner.calls.append((f"{self.name}.{method}", args, kwargs))
            if self.owner.fail:
                raise stripe.StripeError("Your card was declined.")
            return self.owner.handle(self.name, method, args, kwargs)
        return call


class FakeStripe:
    """Records calls made through the stripe module's resource classes."""

    def __init__(self):
        self.calls = []
        self.fail = False
        self.customers = []
        self.invoice_status = "open"
        self.amount_paid = 0
        self.paid_at = None
        self.Customer = FakeStripeResource(self, "Customer")
        self.Invoice = FakeStripeResource(self, "Invoice")
        self.InvoiceItem = FakeStripeResource(self, "InvoiceItem")

    def handle(self, resource, method, args, kwargs):
        if (resource, method) == ("Customer", "list"):
            found = [c for c in self.customers if c.email == kwargs.get("email")]
            return SimpleNamespace(data=found[:kwargs.get("limit", 10)])
        if (resource, method) == ("Customer", "create"):
            customer = SimpleNamespace(id=f"cus_{len(self.customers) + 1}", **kwargs)
            self.customers.append(customer)
            return customer
        if (resource, method) == ("Invoice", "retrieve"):
            return SimpleNamespace(id=args[0], status=self.invoice_status, amount_paid=self.amount_paid,
                                   status_transitions=SimpleNamespace(paid_at=self.paid_at))
        invoice_id = args[0] if args else "in_1"
        return SimpleNamespace(id=invoice_id, hosted_invoice_url=f"https://invoice.stripe.test/{invoice_id}")


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def resend_client():
    return FakeResend()


@pytest.fixture
def stripe_client():
    return FakeStripe()


@pytest.fixture
def county_data():
    return {
        "Sq_Ft": "1,850",
        "Owners_Name": "SMITH, JOHN",
        "Sale_Price": "425000",
        "Sale_Date": "2015-06-15",
        "Yr_Built": "1962",
        "Block": "12",
        "Lot": "4",
        "Qual": "",
        "Acreage": "0.2296",
        "Absentee": "N",
        "Corporate_Owned": False,
        "COUNTY_NAME": "Morris",
        "City_State_Zip": "Morristown, NJ 07960",
    }


@pytest.fixture
def booking_payload(county_data):
    return {
        "formData": {
            "firstName": "Jane",
            "lastName": "Doe",
            "email": "jane@example.com",
            "phone": "9085551234",
            "selectedServices": ["appraisal", "floor-plans"],
            "selectedDate": "2024-06-03",
            "selectedTime": "10:30 AM",
            "referralSource": "Google",
            "appraisalPropertyType": "Single Family",
            "appraisalIntendedUse": "Estate",
        },
        "propertyData": {
            "id": 101,
            "address": "12 Main St, Morristown, NJ",
            "countyData": county_data,
        },
    }
