import logging
import os
import shutil
import time
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database
from pymongo.errors import PyMongoError

import accounts
import analytics
import catalog
import orders
import profiles
import reconciliation
from database import ensure_indexes, get_db, serialize_doc
from errors import ServiceError
from schemas import Category, Role

# Config
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
FRONTEND_DIR = os.getenv("FRONTEND_DIR")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

os.makedirs(UPLOAD_DIR, exist_ok=True)

app = FastAPI(title="Storefront API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handling

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"{location}: {errors[0].get('msg')}" if location else errors[0].get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(PyMongoError)
async def store_error_handler(request: Request, exc: PyMongoError):
    logger.error("%s %s failed", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "message": "Server error"})


@app.exception_handler(OSError)
async def io_error_handler(request: Request, exc: OSError):
    logger.error("%s %s failed", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "message": "Server error"})


@app.on_event("startup")
def create_indexes():
    db = app.dependency_overrides.get(get_db, get_db)()
    try:
        ensure_indexes(db)
    except PyMongoError:
        logger.warning("Could not create indexes; email uniqueness is only checked on signup", exc_info=True)


# Utilities

def save_upload(upload: UploadFile) -> str:
    """Write an uploaded image into UPLOAD_DIR and return its public path."""
    filename = f"{int(time.time() * 1000)}-{os.path.basename(upload.filename)}"
    with open(os.path.join(UPLOAD_DIR, filename), "wb") as f:
        shutil.copyfileobj(upload.file, f)
    return "/uploads/" + filename


def discard_upload(path: Optional[str]) -> None:
    if path:
        try:
            os.remove(os.path.join(UPLOAD_DIR, path.rsplit("/", 1)[1]))
        except FileNotFoundError:
            pass


def uploaded_image(image_file: Optional[UploadFile]) -> Optional[str]:
    if image_file is not None and image_file.filename:
        return save_upload(image_file)
    return None


# Request models
class SignupInput(BaseModel):
    name: str
    email: EmailStr
    password: str
    confirm: str
    role: Role = "user"


class LoginInput(BaseModel):
    email: EmailStr
    password: str
    role: Role = "user"


class ProductRef(BaseModel):
    email: str
    productId: str


class CartAdd(ProductRef):
    quantity: Optional[int] = Field(None, ge=1)


class OrderLineInput(BaseModel):
    productId: str
    quantity: int = Field(1, ge=1)


class OrderInput(BaseModel):
    email: str
    products: List[OrderLineInput]
    totalAmount: float = Field(..., ge=0)


class StatusUpdate(BaseModel):
    status: str


class ProfileInput(BaseModel):
    name: str
    phone: str = ""
    address: str = ""


# Routes
@app.get("/")
def read_root():
    return {"message": "Storefront API"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        response["database_name"] = db.name
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Auth
@app.post("/signup")
def signup(payload: SignupInput, db: Database = Depends(get_db)):
    role = accounts.signup(db, payload.name, payload.email, payload.password, payload.confirm, payload.role)
    return {"success": True, "role": role}


@app.post("/login")
def login(payload: LoginInput, db: Database = Depends(get_db)):
    role, is_new_user = accounts.login(db, payload.email, payload.password, payload.role)
    return {"success": True, "role": role, "isNewUser": is_new_user}


# Products
@app.get("/products")
def list_products(
    category: Optional[str] = Query(None),
    priceMin: Optional[float] = Query(None),
    priceMax: Optional[float] = Query(None),
    size: Optional[str] = Query(None),
    rating: Optional[float] = Query(None),
    brand: Optional[str] = Query(None),
    color: Optional[str] = Query(None),
    db: Database = Depends(get_db),
):
    filters = catalog.ProductFilter(
        category=category, priceMin=priceMin, priceMax=priceMax,
        size=size, rating=rating, brand=brand, color=color,
    )
    return serialize_doc(catalog.list_products(db, filters))


@app.get("/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return serialize_doc(catalog.get_product(db, product_id))


@app.post("/products")
def create_product(
    name: str = Form(...),
    price: float = Form(...),
    category: Category = Form(...),
    description: str = Form(""),
    size: str = Form(""),
    brand: str = Form(""),
    color: str = Form(""),
    rating: Optional[float] = Form(None),
    imageUrl: Optional[str] = Form(None),
    imageFile: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
):
    saved = uploaded_image(imageFile)
    fields = {
        "name": name, "price": price, "category": category, "description": description,
        "size": size, "brand": brand, "color": color, "rating": rating,
        "image": saved or imageUrl or None,
    }
    try:
        product = catalog.create_product(db, fields)
    except Exception:
        discard_upload(saved)
        raise
    return {"success": True, "product": serialize_doc(product)}


@app.put("/products/{product_id}")
def update_product(
    product_id: str,
    name: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    category: Optional[Category] = Form(None),
    description: Optional[str] = Form(None),
    size: Optional[str] = Form(None),
    brand: Optional[str] = Form(None),
    color: Optional[str] = Form(None),
    rating: Optional[float] = Form(None),
    imageUrl: Optional[str] = Form(None),
    imageFile: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
):
    saved = uploaded_image(imageFile)
    fields = {
        "name": name, "price": price, "category": category, "description": description,
        "size": size, "brand": brand, "color": color, "rating": rating,
        "image": saved or imageUrl or None,
    }
    try:
        product = catalog.update_product(db, product_id, fields)
    except Exception:
        discard_upload(saved)
        raise
    return {"success": True, "product": serialize_doc(product)}


@app.delete("/products/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db)):
    catalog.delete_product(db, product_id)
    return {"success": True}


# Wishlist
@app.post("/wishlist")
def add_to_wishlist(payload: ProductRef, db: Database = Depends(get_db)):
    accounts.add_to_wishlist(db, payload.email, payload.productId)
    return {"success": True}


@app.get("/wishlist/{email}")
def get_wishlist(email: str, db: Database = Depends(get_db)):
    return serialize_doc(reconciliation.get_wishlist(db, email))


@app.delete("/wishlist/remove")
def remove_from_wishlist(payload: ProductRef, db: Database = Depends(get_db)):
    accounts.remove_from_wishlist(db, payload.email, payload.productId)
    return {"success": True, "message": "Product removed from wishlist"}


# Cart
@app.get("/cart/{email}")
def get_cart(email: str, db: Database = Depends(get_db)):
    return serialize_doc(reconciliation.get_cart(db, email))


@app.post("/cart")
def add_to_cart(payload: CartAdd, db: Database = Depends(get_db)):
    accounts.add_to_cart(db, payload.email, payload.productId, payload.quantity)
    return {"success": True}


@app.delete("/cart/remove")
def remove_from_cart(payload: ProductRef, db: Database = Depends(get_db)):
    try:
        cart = accounts.remove_from_cart(db, payload.email, payload.productId)
    except Exception:
        logger.exception("Cart removal for %s failed, returning empty cart", payload.email)
        return []
    return serialize_doc(cart)


# Orders
@app.post("/orders")
def create_order(payload: OrderInput, db: Database = Depends(get_db)):
    lines = [line.model_dump() for line in payload.products]
    order = orders.create_order(db, payload.email, lines, payload.totalAmount)
    return {"success": True, "order": serialize_doc(order)}


@app.get("/orders")
def list_orders(db: Database = Depends(get_db)):
    return serialize_doc(orders.list_orders(db))


@app.put("/orders/{order_id}")
def update_order(order_id: str, payload: StatusUpdate, db: Database = Depends(get_db)):
    order = orders.update_status(db, order_id, payload.status)
    return {"success": True, "order": serialize_doc(order)}


# Analytics
@app.get("/analytics")
def get_analytics(db: Database = Depends(get_db)):
    return analytics.summary(db)


# Profile
@app.get("/api/profile/{email}")
def get_profile(email: str, db: Database = Depends(get_db)):
    return {"success": True, "profile": serialize_doc(profiles.get_profile(db, email))}


@app.put("/api/profile/{email}")
def update_profile(email: str, payload: ProfileInput, db: Database = Depends(get_db)):
    profile = profiles.upsert_profile(db, email, payload.name, payload.phone, payload.address)
    return {"success": True, "message": "Profile updated successfully", "profile": serialize_doc(profile)}


# Static files
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")

if FRONTEND_DIR and os.path.isdir(FRONTEND_DIR):
    app.mount("/", StaticFiles(directory=FRONTEND_DIR, html=True), name="frontend")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
