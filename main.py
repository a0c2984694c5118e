import os
from contextlib import asynccontextmanager
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pymongo.errors import PyMongoError

from config import Settings
from context import AppContext
from errors import InvalidToken, ServiceError
from logging_config import configure_logging
from schemas import (
    BestCustomer,
    BestSeller,
    CustomerInput,
    CustomerOut,
    CustomerUpdate,
    Identity,
    Message,
    OrderInput,
    OrderOut,
    OrderState,
    OrderUpdate,
    ProductInput,
    ProductOut,
    ProductUpdate,
    Token,
    UserInput,
    UserOut,
)

logger = structlog.get_logger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login")

router = APIRouter()


# Helpers
def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_current_user(token: str = Depends(oauth2_scheme), ctx: AppContext = Depends(get_context)) -> Identity:
    return ctx.identity.verify_token(token)


async def service_error_handler(request: Request, exc: ServiceError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, InvalidToken) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database error", path=request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@router.get("/")
def read_root():
    return {"message": "Order management backend is running"}


@router.get("/test")
def test_database(ctx: AppContext = Depends(get_context)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "collections": [],
    }
    try:
        response["collections"] = ctx.db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        logger.warning("Database health check failed", error=str(e))
        response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
    return response


# Auth
@router.post("/api/users", response_model=UserOut, status_code=201)
def create_user(user: UserInput, ctx: AppContext = Depends(get_context)):
    return ctx.identity.create_identity(user)


@router.post("/api/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends(), ctx: AppContext = Depends(get_context)):
    return Token(access_token=ctx.identity.authenticate(form_data.username, form_data.password))


@router.get("/api/me", response_model=UserOut)
def me(current: Identity = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return ctx.identity.get(current.id)


# Catalog
@router.get("/api/products", response_model=List[ProductOut])
def list_products(ctx: AppContext = Depends(get_context)):
    return ctx.catalog.list()


@router.get("/api/products/search", response_model=List[ProductOut])
def search_products(text: str = Query(..., min_length=1), ctx: AppContext = Depends(get_context)):
    return ctx.catalog.search(text)


@router.get("/api/products/{product_id}", response_model=ProductOut)
def get_product(product_id: str, ctx: AppContext = Depends(get_context)):
    return ctx.catalog.get(product_id)


@router.post("/api/products", response_model=ProductOut, status_code=201)
def create_product(
    product: ProductInput,
    current: Identity = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    return ctx.catalog.create(product)


@router.put("/api/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: str,
    changes: ProductUpdate,
    current: Identity = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    return ctx.catalog.update(product_id, changes)


@router.delete("/api/products/{product_id}", response_model=Message)
def delete_product(product_id: str, current: Identity = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    ctx.catalog.delete(product_id)
    return Message(message="Product deleted successfully")


# Customers
@router.get("/api/customers", response_model=List[CustomerOut])
def list_customers(current: Identity = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return ctx.customers.list_all(populate=True)


@router.get("/api/customers/mine", response_model=List[CustomerOut])
def list_my_customers(current: Identity = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return ctx.customers.list_by_seller(current.id, populate=True)


@router.get("/api/customers/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: str, current: Identity = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return ctx.customers.get(customer_id, current.id, populate=True)


@router.post("/api/customers", response_model=CustomerOut, status_code=201)
def create_customer(
    customer: CustomerInput,
    current: Identity = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    return ctx.customers.create(customer, current.id)


@router.put("/api/customers/{customer_id}", response_model=CustomerOut)
def update_customer(
    customer_id: str,
    changes: CustomerUpdate,
    current: Identity = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    return ctx.customers.update(customer_id, changes, current.id, populate=True)


@router.delete("/api/customers/{customer_id}", response_model=Message)
def delete_customer(customer_id: str, current: Identity = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    ctx.customers.delete(customer_id, current.id)
    return Message(message="Customer deleted successfully")


# Orders
@router.get("/api/orders", response_model=List[OrderOut])
def list_orders(current: Identity = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return ctx.orders.list_all(populate=True)


@router.get("/api/orders/mine", response_model=List[OrderOut])
def list_my_orders(
    state: Optional[OrderState] = None,
    current: Identity = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    return ctx.orders.list_by_seller(current.id, state=state, populate=True)


@router.get("/api/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: str, current: Identity = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    return ctx.orders.get_order(order_id, current.id, populate=True)


@router.post("/api/orders", response_model=OrderOut, status_code=201)
def create_order(
    order: OrderInput,
    current: Identity = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    return ctx.orders.create_order(order, current.id, populate=True)


@router.put("/api/orders/{order_id}", response_model=OrderOut)
def update_order(
    order_id: str,
    changes: OrderUpdate,
    current: Identity = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    return ctx.orders.update_order(order_id, changes, current.id, populate=True)


@router.delete("/api/orders/{order_id}", response_model=Message)
def delete_order(order_id: str, current: Identity = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    ctx.orders.delete_order(order_id, current.id)
    return Message(message="Order deleted successfully.")


# Reports
@router.get("/api/reports/best-customers", response_model=List[BestCustomer])
def best_customers(ctx: AppContext = Depends(get_context)):
    return ctx.reports.best_customers()


@router.get("/api/reports/best-sellers", response_model=List[BestSeller])
def best_sellers(ctx: AppContext = Depends(get_context)):
    return ctx.reports.best_sellers()


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Build the API. Without a context one is created from the environment at startup and closed at shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if context is not None:
            yield
            return
        configure_logging()
        app.state.context = AppContext(Settings.from_env())
        app.state.context.init()
        try:
            yield
        finally:
            app.state.context.close()

    app = FastAPI(title="Order Management API", lifespan=lifespan)
    if context is not None:
        app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(PyMongoError, database_error_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=Settings.from_env().port)
