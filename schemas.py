"""
Database Schemas

Define your MongoDB collection schemas here using Pydantic models.
Each Pydantic model represents a collection in your database.
Model name lowercased is the collection name.

Field names match the JSON the storefront client already consumes, so
documents are stored in camelCase.
"""

from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List, Literal

Category = Literal["men", "women", "kids"]
Role = Literal["user", "admin"]
OrderStatus = Literal["Pending", "Shipped", "Delivered"]

ORDER_STATUSES = ("Pending", "Shipped", "Delivered")


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)
    category: Category
    description: str = ""
    image: str = Field(..., min_length=1, description="/uploads/<file> or external URL")
    size: str = ""
    brand: str = ""
    color: str = ""
    rating: Optional[float] = Field(None, ge=1, le=5)


class CartEntry(BaseModel):
    productId: str
    quantity: int = Field(1, ge=1)


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    passwordHash: str = Field(..., description="BCrypt hashed password")
    role: Role = "user"
    isFirstLogin: bool = True
    wishlist: List[str] = Field(default_factory=list, description="Product ids")
    cart: List[CartEntry] = Field(default_factory=list)


class OrderLine(BaseModel):
    productId: str
    productName: str
    productPrice: float
    quantity: int = Field(..., ge=1)


class Order(BaseModel):
    userId: str
    products: List[OrderLine]
    totalAmount: float = Field(..., ge=0)
    status: OrderStatus = "Pending"


class Profile(BaseModel):
    name: str = "New User"
    email: str
    phone: str = ""
    address: str = ""
