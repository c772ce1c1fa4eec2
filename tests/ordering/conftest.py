import pytest
from catalogue.service.fake_adapter import FakeCatalogService
from ordering.checkout.pricing import DeliveryPolicy
from ordering.order.fake_adapter import FakeOrderService
from ordering.runtime import build_runtime, set_runtime
from ordering.shipping.fake_adapter import FakeShippingProfile
from payments.gateway.fake_adapter import FakeGateway
from payments.service.fake_adapter import FakePaymentService
from protean.integrations.pytest import DomainFixture
from shared.storage.memory_adapter import MemoryStorage

SECRET = "test-signing-secret"

SHOP_A = "shop-a"
SHOP_B = "shop-b"

CHAI = "6650f1c2a9b3e4d5f6a7b801"  # 40.00, 5 in stock
BISCUITS = "6650f1c2a9b3e4d5f6a7b802"  # 25.00, 10 in stock
KETTLE = "6650f1c2a9b3e4d5f6a7b803"  # 150.00, 2 in stock
SAMOSA = "6650f1c2a9b3e4d5f6a7b804"  # 60.00, 3 in stock, other shop

ADDRESS = "12 MG Road, Bengaluru"


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture()
def catalog():
    catalog = FakeCatalogService()
    catalog.add_product(CHAI, price=40.0, stock_quantity=5, shop_id=SHOP_A, name="Masala Chai")
    catalog.add_product(BISCUITS, price=25.0, stock_quantity=10, shop_id=SHOP_A, name="Butter Biscuits")
    catalog.add_product(KETTLE, price=150.0, stock_quantity=2, shop_id=SHOP_A, name="Copper Kettle")
    catalog.add_product(SAMOSA, price=60.0, stock_quantity=3, shop_id=SHOP_B, name="Samosa Box")
    return catalog


@pytest.fixture()
def storage():
    return MemoryStorage()


@pytest.fixture()
def orders(catalog):
    return FakeOrderService(catalog, DeliveryPolicy())


@pytest.fixture()
def payments(orders):
    return FakePaymentService(secret=SECRET, orders=orders)


@pytest.fixture()
def gateway(payments):
    gateway = FakeGateway(payments, secret=SECRET)
    # Reports are delivered explicitly by each test
    gateway.configure(outcome="hold")
    return gateway


@pytest.fixture()
def shipping():
    return FakeShippingProfile(preferred_address=ADDRESS)


@pytest.fixture()
def runtime(storage, catalog, orders, payments, gateway, shipping):
    runtime = build_runtime(
        storage=storage,
        catalog=catalog,
        orders=orders,
        payments=payments,
        gateway=gateway,
        shipping=shipping,
        delivery_policy=DeliveryPolicy(),
        currency="INR",
        strict=False,
    )
    set_runtime(runtime)
    return runtime


@pytest.fixture()
def snapshots(runtime):
    return runtime.snapshots


@pytest.fixture()
def cart_store(runtime):
    return runtime.cart_store


@pytest.fixture()
def validator(runtime):
    return runtime.validator


@pytest.fixture()
def orchestrator(runtime):
    return runtime.orchestrator
