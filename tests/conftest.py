import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from context import AppContext
from main import create_app
from schemas import CustomerInput, ProductInput, UserInput


@pytest.fixture()
def settings():
    return Settings(database_name="order_management_test", secret_key="test-secret", bcrypt_rounds=4)


@pytest.fixture()
def context(settings):
    ctx = AppContext(settings, client=mongomock.MongoClient())
    yield ctx
    ctx.close()


@pytest.fixture()
def client(context):
    return TestClient(create_app(context))


def make_seller(context, email="seller@example.com", password="s3cret"):
    return context.identity.create_identity(
        UserInput(name="Ada", surname="Lovelace", email=email, password=password)
    )


def make_product(context, name="Widget", quantity=5, price=9.99):
    return context.catalog.create(ProductInput(name=name, quantity=quantity, price=price))


def make_customer(context, seller_id, email="client@example.com"):
    return context.customers.create(
        CustomerInput(name="Grace", surname="Hopper", company="Navy", email=email, phone="555-0100"),
        seller_id,
    )


@pytest.fixture()
def seller(context):
    return make_seller(context)


@pytest.fixture()
def other_seller(context):
    return make_seller(context, email="rival@example.com")


@pytest.fixture()
def customer(context, seller):
    return make_customer(context, seller["id"])
