import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Union

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

from . import config, crud, models, schemas
from . import db as storage
from .auth import (
    create_access_token,
    ensure_self_or_admin,
    get_current_user,
    get_optional_user,
    is_admin,
    require_admin,
)
from .db import get_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = config.get_settings()
    config.configure_logging()
    client = storage.create_client(settings.mongodb_url)
    app.state.db = storage.init_db(client, settings.database_name)
    try:
        yield
    finally:
        storage.close_db(client)


app = FastAPI(title="Parts Marketplace API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(config.get_settings().allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Missing or malformed input is a plain 400 for this API
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
def health(db: Database = Depends(get_db)):
    return {"status": "ok", "database": db.name}


# -------------------- Users --------------------

def _registration_role(user: schemas.UserUpsert, caller: Optional[dict]) -> str:
    if user.role != models.ROLE_ADMIN:
        return models.ROLE_USER
    if is_admin(caller) or user.email.lower() in config.get_settings().admin_emails:
        return models.ROLE_ADMIN
    logger.warning("Ignoring admin role requested at registration for uid=%s", user.uid)
    return models.ROLE_USER


@app.post("/users", response_model=schemas.UserAuthResponse)
def login_or_register(
    user: schemas.UserUpsert,
    response: Response,
    db: Database = Depends(get_db),
    caller: Optional[dict] = Depends(get_optional_user),
):
    try:
        doc, created = crud.register_or_login(db, user, _registration_role(user, caller))
    except crud.ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    token = create_access_token(doc["uid"], doc.get("role", models.ROLE_USER))
    if created:
        response.status_code = 201
        message = "User registered successfully"
    else:
        message = "Login successful"
    return {"message": message, "token": token, "user": models.serialize_doc(doc)}


@app.get("/users", response_model=List[schemas.UserRead])
def get_users(db: Database = Depends(get_db), _: dict = Depends(require_admin)):
    return [models.serialize_doc(u) for u in crud.list_users(db)]


@app.get("/user/{uid}", response_model=schemas.UserRead)
def get_user(uid: str, db: Database = Depends(get_db), current: dict = Depends(get_current_user)):
    ensure_self_or_admin(current, uid)
    user = crud.get_user(db, uid)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return models.serialize_doc(user)


@app.put("/users/{uid}", response_model=Union[schemas.RoleResponse, schemas.UserUpdateResponse])
def api_update_user(
    uid: str,
    payload: schemas.UserUpdate,
    db: Database = Depends(get_db),
    current: dict = Depends(get_current_user),
):
    if payload.toggleRole:
        if not is_admin(current):
            raise HTTPException(status_code=403, detail="forbidden: admin required to change role")
        role = crud.toggle_user_role(db, uid)
        if role is None:
            raise HTTPException(status_code=404, detail="User not found")
        return {"message": "User role toggled successfully", "role": role}

    ensure_self_or_admin(current, uid)
    changes = payload.changes()
    # non-admins can only reach their own record here, so `current` is the target
    if "role" in changes and not is_admin(current) and changes["role"] != current.get("role"):
        raise HTTPException(status_code=403, detail="forbidden: admin required to change role")
    try:
        updated = crud.update_user(db, uid, changes)
    except crud.ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if updated is None:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User information updated successfully", "data": models.serialize_doc(updated)}


@app.delete("/users/{uid}", response_model=schemas.MessageResponse)
def api_delete_user(uid: str, db: Database = Depends(get_db), _: dict = Depends(require_admin)):
    if not crud.delete_user(db, uid):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User deleted successfully"}


@app.put("/make-admin/{user_id}", response_model=schemas.MessageResponse)
def api_make_admin(user_id: str, db: Database = Depends(get_db), _: dict = Depends(require_admin)):
    try:
        ok = crud.make_admin(db, user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not ok:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User promoted to admin"}


# -------------------- Products --------------------

@app.get("/products", response_model=List[schemas.ProductRead])
def get_products(db: Database = Depends(get_db)):
    return [models.serialize_doc(p) for p in crud.list_products(db)]


@app.get("/make_order/{product_id}", response_model=schemas.ProductRead)
def get_product(product_id: str, db: Database = Depends(get_db)):
    try:
        product = crud.get_product(db, product_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return models.serialize_doc(product)


@app.post("/products", response_model=schemas.ProductCreateResponse, status_code=201)
def create_product(product: schemas.ProductCreate, db: Database = Depends(get_db), _: dict = Depends(require_admin)):
    created = crud.create_product(db, product)
    return {"message": "Product created successfully", "product": models.serialize_doc(created)}


@app.patch("/products/{product_id}", response_model=schemas.StockAdjustResult)
def adjust_product_stock(
    product_id: str,
    payload: schemas.StockAdjust,
    db: Database = Depends(get_db),
    current: dict = Depends(get_current_user),
):
    if payload.action == "add" and not is_admin(current):
        raise HTTPException(status_code=403, detail="forbidden: admin required to add stock")
    try:
        updated = crud.adjust_stock(db, product_id, payload.quantity, payload.action)
    except crud.CorruptDocumentError as e:
        logger.error("Product %s: %s", product_id, e)
        raise HTTPException(status_code=500, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if updated is None:
        raise HTTPException(status_code=404, detail="Product not found.")
    return {
        "message": "Product quantity updated successfully.",
        "productId": product_id,
        "available_quantity": updated["available_quantity"],
    }


@app.delete("/products/{product_id}", response_model=schemas.MessageResponse)
def api_delete_product(product_id: str, db: Database = Depends(get_db), _: dict = Depends(require_admin)):
    try:
        ok = crud.delete_product(db, product_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not ok:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"message": "Product deleted successfully"}


# -------------------- Orders --------------------

@app.get("/orders", response_model=List[schemas.OrderRead])
def get_orders(
    email: Optional[str] = Query(default=None),
    db: Database = Depends(get_db),
    current: dict = Depends(get_current_user),
):
    # customers only ever see their own orders
    if not is_admin(current):
        email = current.get("email")
        if not email:
            return []
    return [models.serialize_doc(o) for o in crud.list_orders(db, customer_email=email)]


@app.post("/orders", response_model=schemas.OrderCreateResponse, status_code=201)
def create_order(order: schemas.OrderCreate, db: Database = Depends(get_db), current: dict = Depends(get_current_user)):
    # customerEmail is the ownership key for listing and cancelling orders
    if not is_admin(current) and order.customerEmail != current.get("email"):
        raise HTTPException(status_code=403, detail="forbidden: orders must be placed under your own email")
    created = crud.create_order(db, order)
    return {"message": "Order placed successfully", "order": models.serialize_doc(created)}


@app.put("/orders/{order_id}", response_model=schemas.MessageResponse)
def api_update_order(
    order_id: str,
    payload: schemas.OrderStatusUpdate,
    db: Database = Depends(get_db),
    _: dict = Depends(require_admin),
):
    try:
        ok = crud.update_order_status(db, order_id, payload.status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not ok:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"message": "Order status updated successfully"}


@app.delete("/orders/{order_id}", response_model=schemas.MessageResponse)
def api_delete_order(order_id: str, db: Database = Depends(get_db), current: dict = Depends(get_current_user)):
    try:
        order = crud.get_order(db, order_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    # Authorization: acting user must be the customer on the order or an admin
    if not is_admin(current) and order.get("customerEmail") != current.get("email"):
        raise HTTPException(status_code=403, detail="forbidden")
    if not crud.delete_order(db, order_id):
        raise HTTPException(status_code=404, detail="Order not found")
    return {"message": "Order deleted successfully"}


# -------------------- Reviews --------------------

@app.post("/reviews", response_model=schemas.ReviewCreateResponse, status_code=201)
def create_review(review: schemas.ReviewCreate, db: Database = Depends(get_db), _: dict = Depends(get_current_user)):
    try:
        created = crud.create_review(db, review)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "Review added successfully", "reviewId": str(created["_id"])}


@app.get("/reviews", response_model=List[schemas.ReviewRead])
def get_reviews(db: Database = Depends(get_db)):
    return [models.serialize_doc(r) for r in crud.list_reviews(db)]


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.get_settings().port)
