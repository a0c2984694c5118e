"""
Database Schemas for order management

Input models validate request bodies before they reach the stores.
Output models describe the documents the API returns; each stored
collection is the lowercase of the entity name (user, product, customer, order).
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union
from pydantic import BaseModel, Field, EmailStr


class OrderState(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


# Inputs
class UserInput(BaseModel):
    name: str = Field(..., min_length=1)
    surname: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1, description="Plain password, hashed before storage")


class ProductInput(BaseModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=0, description="Quantity on hand")
    price: float = Field(..., ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    quantity: Optional[int] = Field(None, ge=0, description="Overwrites quantity on hand (restock)")
    price: Optional[float] = Field(None, ge=0)


class CustomerInput(BaseModel):
    name: str = Field(..., min_length=1)
    surname: str = Field(..., min_length=1)
    company: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    surname: Optional[str] = Field(None, min_length=1)
    company: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None


class OrderLineInput(BaseModel):
    product: str = Field(..., description="Product id")
    quantity: int = Field(..., gt=0)


class OrderInput(BaseModel):
    products: List[OrderLineInput] = Field(..., min_length=1)
    total: float = Field(..., ge=0)
    customer: str = Field(..., description="Customer id")


class OrderUpdate(BaseModel):
    products: Optional[List[OrderLineInput]] = None
    total: Optional[float] = Field(None, ge=0)
    customer: Optional[str] = None
    state: Optional[OrderState] = None


# Outputs
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class Identity(BaseModel):
    """Claims carried by a verified token."""
    id: str
    name: str
    surname: str
    email: EmailStr


class UserOut(BaseModel):
    id: str
    name: str
    surname: str
    email: EmailStr
    created_at: Optional[datetime] = None


class ProductOut(BaseModel):
    id: str
    name: str
    quantity: int
    price: float
    created_at: Optional[datetime] = None


class CustomerOut(BaseModel):
    id: str
    name: str
    surname: str
    company: str
    email: EmailStr
    phone: Optional[str] = None
    seller: Optional[Union[UserOut, str]] = None
    created_at: Optional[datetime] = None


class OrderLineOut(BaseModel):
    product: Optional[Union[ProductOut, str]] = None
    quantity: int


class OrderOut(BaseModel):
    id: str
    products: List[OrderLineOut]
    total: float
    customer: Optional[Union[CustomerOut, str]] = None
    seller: Optional[Union[UserOut, str]] = None
    state: OrderState
    created_at: Optional[datetime] = None


class BestCustomer(BaseModel):
    total: float
    customer: Optional[CustomerOut] = None


class BestSeller(BaseModel):
    total: float
    seller: Optional[UserOut] = None


class Message(BaseModel):
    message: str
