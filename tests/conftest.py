import pytest

from fakes import FakeDatabase, FakeStore, fake_repositories
from sepay_renewal.config import Config
from sepay_renewal.services.payments import PaymentWebhookService

WEBHOOK_SECRET = "test-webhook-secret"
API_KEY = "test-api-key"


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def db(store):
    return FakeDatabase(store)


@pytest.fixture
def repos(store):
    return fake_repositories(store)


@pytest.fixture
def config():
    return Config(
        database_url="postgresql://localhost/test",
        sepay_webhook_secret=WEBHOOK_SECRET,
        sepay_api_key=API_KEY,
        telegram_bot_token="",
    )


@pytest.fixture
def service(config, db, repos):
    return PaymentWebhookService(config, db=db, repositories=repos)
