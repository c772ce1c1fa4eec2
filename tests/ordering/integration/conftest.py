import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api.routes import cart_router, checkout_router
from ordering.domain import ordering


@pytest.fixture()
def client(runtime):
    app = FastAPI()

    @app.middleware("http")
    async def domain_context(request, call_next):
        with ordering.domain_context():
            return await call_next(request)

    app.include_router(cart_router)
    app.include_router(checkout_router)
    # One event loop for the whole test so checkout state survives between requests
    with TestClient(app) as client:
        yield client
