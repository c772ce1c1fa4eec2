import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Fetch and activate the domain by pushing the associated domain_context. The activated domain can then be referred to elsewhere as `current_domain`
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ.setdefault("PAYMENT_SIGNING_SECRET", "test-signing-secret")

    from catalogue.domain import catalogue

    catalogue.init()
    catalogue.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def reset_factories():
    """Drop adapter singletons so no test sees another's fakes."""
    yield

    from catalogue.service import reset_catalog_service
    from ordering.order import reset_order_service
    from ordering.runtime import reset_runtime
    from ordering.shipping import reset_shipping_profile
    from payments.gateway import reset_gateway
    from payments.service import reset_payment_service
    from shared.storage import reset_storage

    reset_runtime()
    reset_storage()
    reset_catalog_service()
    reset_order_service()
    reset_payment_service()
    reset_gateway()
    reset_shipping_profile()


@pytest.fixture(autouse=True)
def run_around_tests():
    """Fixture to automatically cleanup infrastructure after every test"""
    yield

    from protean import current_domain

    # Clear all databases
    for _, provider in current_domain.providers.items():
        provider._data_reset()
