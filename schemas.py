"""
EthioShop Database Schemas

Each record model below describes one MongoDB collection. Collection names follow the storefront
tables: categories, products, cart_items, orders, order_items, user_profiles, plus users and
sessions for authentication.

Request bodies accepted by the API live at the bottom of the module.
"""
from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, Field, EmailStr

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
PAYMENT_METHODS = ("cash_on_delivery", "telebirr", "bank_transfer")
LANGUAGES = ("en", "am")

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentMethod = Literal["cash_on_delivery", "telebirr", "bank_transfer"]
Language = Literal["en", "am"]

STATUS_LABELS: Dict[str, Dict[str, str]] = {
    "pending": {"en": "Pending", "am": "በመጠባበቅ ላይ"},
    "processing": {"en": "Processing", "am": "በማቀድ ላይ"},
    "shipped": {"en": "Shipped", "am": "ተልኳል"},
    "delivered": {"en": "Delivered", "am": "ደርሷል"},
    "cancelled": {"en": "Cancelled", "am": "ተሰርዟል"},
}


class Category(BaseModel):
    name: str
    name_am: Optional[str] = None
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    display_order: int = 0


class Product(BaseModel):
    category_id: Optional[str] = None
    name: str
    name_am: Optional[str] = None
    slug: str
    description: Optional[str] = None
    description_am: Optional[str] = None
    price: float = Field(..., ge=0)
    compare_at_price: Optional[float] = Field(None, description="Shown struck through when above price")
    images: List[str] = []
    stock_quantity: int = 0
    is_featured: bool = False
    is_active: bool = True


class CartItem(BaseModel):
    user_id: str
    product_id: str
    quantity: int = Field(1, ge=1)


class ShippingAddress(BaseModel):
    address: str
    city: str
    region: Optional[str] = None


class Order(BaseModel):
    user_id: Optional[str] = None
    order_number: str
    status: OrderStatus = "pending"
    total_amount: float = Field(..., ge=0)
    customer_name: str
    customer_email: EmailStr
    customer_phone: str
    shipping_address: ShippingAddress
    payment_method: PaymentMethod = "cash_on_delivery"
    payment_status: str = Field("pending", description="pending | paid | failed")
    notes: Optional[str] = None
    idempotency_key: Optional[str] = None


class OrderItem(BaseModel):
    order_id: str
    product_id: str
    product_name: str
    product_price: float
    quantity: int = Field(..., ge=1)
    subtotal: float


class UserProfile(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Dict[str, Any]] = None
    is_admin: bool = False


class User(BaseModel):
    email: EmailStr
    password_hash: str


# Request bodies

class SignUpDTO(BaseModel):
    email: EmailStr
    password: str
    full_name: str
    confirm_password: Optional[str] = None


class SignInDTO(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdateDTO(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Dict[str, Any]] = None


class AddToCartDTO(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class SetQuantityDTO(BaseModel):
    quantity: int


class CheckoutDTO(BaseModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    region: Optional[str] = None
    payment_method: PaymentMethod = "cash_on_delivery"
    notes: Optional[str] = None


class OrderStatusDTO(BaseModel):
    status: OrderStatus
