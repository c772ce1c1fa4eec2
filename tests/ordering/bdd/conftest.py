"""Shared BDD fixtures and step definitions for cart and checkout features."""

import asyncio
import json

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when
from shared.errors import DomainError

PRODUCTS = {
    "Masala Chai": "6650f1c2a9b3e4d5f6a7b801",
    "Butter Biscuits": "6650f1c2a9b3e4d5f6a7b802",
    "Copper Kettle": "6650f1c2a9b3e4d5f6a7b803",
    "Samosa Box": "6650f1c2a9b3e4d5f6a7b804",
}


@pytest.fixture()
def products():
    return PRODUCTS


@pytest.fixture()
def run():
    """Run coroutines of one scenario on a single event loop."""
    loop = asyncio.new_event_loop()
    yield loop.run_until_complete
    loop.close()


@pytest.fixture()
def error():
    """Container for an error raised by a When step."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('"{name}" has {stock:d} in stock'))
def _(catalog, name, stock):
    catalog.set_stock(PRODUCTS[name], stock)


@given(parsers.cfparse('"{name}" is {availability}'))
def _(catalog, name, availability):
    catalog.set_availability(PRODUCTS[name], availability)


@given(parsers.cfparse('the cart holds {quantity:d} of "{name}"'))
def _(storage, cart_store, name, quantity):
    # Written as the client left it, without CartStore's stock checks
    records = json.loads(storage.read("cart") or "[]")
    records.append({"productId": PRODUCTS[name], "quantity": quantity})
    storage.write("cart", json.dumps(records))
    cart_store.reload()


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('{quantity:d} more of "{name}" are added'))
def _(run, cart_store, name, quantity, error):
    try:
        run(cart_store.add(PRODUCTS[name], quantity))
    except (DomainError, ValidationError) as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the cart holds {quantity:d} of "{name}"'))
def _(cart_store, name, quantity):
    assert cart_store.quantity_of(PRODUCTS[name]) == quantity


@then(parsers.cfparse('the cart does not hold "{name}"'))
def _(cart_store, name):
    assert cart_store.quantity_of(PRODUCTS[name]) == 0


@then("the cart is empty")
def _(cart_store):
    assert cart_store.is_empty


@then(parsers.cfparse("the addition is refused with {code}"))
def _(error, code):
    assert error["exc"] is not None
    assert error["exc"].code == code
