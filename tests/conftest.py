"""Pytest fixtures for the insurance request lifecycle, invoices and API tests."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.database.postgres import PostgresDB
from src.insurance.lifecycle import RequestLifecycle
from src.integrations.clients.mocks.messaging import MockMessagingClient
from src.integrations.policy.notification_service import NotificationService
from src.invoices.images import ImageResolver
from src.invoices.renderer import InvoiceRenderer
from src.utils.config_loader import AppSettings, load_invoice_config


@pytest.fixture
def db():
    """In-memory PostgresDB stub for tests."""
    return PostgresDB()


@pytest.fixture
def settings(tmp_path):
    # model_validate keeps the machine environment out of test settings
    return AppSettings.model_validate(
        {
            "app_url": "http://testserver",
            "invoices_dir": tmp_path / "invoices",
            "uploads_dir": tmp_path / "uploads",
            "temp_dir": tmp_path / "temp",
            "rate_limit_max_requests": 0,
        }
    )


@pytest.fixture
def invoice_config():
    return load_invoice_config(environ={})


@pytest.fixture
def messaging_client():
    return MockMessagingClient()


@pytest.fixture
def resolver(settings):
    return ImageResolver(settings.uploads_dir, settings.temp_dir, timeout_seconds=1)


@pytest.fixture
def renderer(settings, invoice_config, resolver):
    return InvoiceRenderer(settings.invoices_dir, invoice_config, resolver)


@pytest.fixture
def lifecycle(db, renderer, messaging_client, settings):
    return RequestLifecycle(db, renderer, NotificationService(messaging_client), settings)


@pytest.fixture
def payload():
    """A webhook body as the WhatsApp bot sends it."""
    return {
        "userId": "+91 98765-43210",
        "timestamp": "2025-01-15T10:30:00Z",
        "itemName": "Cashew Nuts W320",
        "quantity": "45",
        "vehicleNo": "KA01AB1234",
        "rate": "98.50",
        "supplierName": "Sri Lakshmi Traders",
        "supplierPlace": "Mangalore",
        "partyName": "Kumar & Sons",
        "partyAddress": "12 Market Road, Bengaluru",
        "transporterName": "VRL Logistics",
        "consent": "TRUE",
    }


@pytest.fixture
def stored_request(db):
    """A pending request inserted directly into the store."""
    return db.insert_request(
        {
            "user_id": "919876543210",
            "timestamp": datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc),
            "item_name": "Cashew Nuts W320",
            "quantity": 45,
            "vehicle_no": "KA01AB1234",
            "rate": Decimal("98.50"),
            "supplier_name": "Sri Lakshmi Traders",
            "supplier_place": "Mangalore",
            "party_name": "Kumar & Sons",
            "party_address": "12 Market Road, Bengaluru",
            "transporter_name": "VRL Logistics",
            "consent": True,
            "premium_amount": Decimal("8.87"),
        }
    )
