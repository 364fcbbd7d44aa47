import re
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

EMAIL_REGEX = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'

class CamelModel(BaseModel):
    """Base for every wire model: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

def check_email(v):
    if not re.match(EMAIL_REGEX, v):
        raise ValueError('Invalid email address')
    return v.lower()

Email = Annotated[str, AfterValidator(check_email)]

# --- USERS / AUTH ---
class UserOut(CamelModel):
    id: str
    username: str
    email: str
    role: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    address: Optional[Any] = None
    is_active: bool
    created_at: Optional[datetime] = None

class UserEnvelope(CamelModel):
    user: UserOut

class EmailChanged(UserEnvelope):
    message: str

class RegisterRequest(CamelModel):
    username: str = Field(min_length=3, max_length=100)
    email: Email
    password: str
    confirm_password: str
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    phone: Optional[str] = None
    role: Literal["user", "vendor"] = "user"

    @model_validator(mode='after')
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self

class LoginRequest(CamelModel):
    email: Email
    password: str = Field(min_length=6)

class AdminLoginRequest(CamelModel):
    username: str
    password: str

class ProfileUpdate(CamelModel):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = None

class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str
    confirm_password: str

    @model_validator(mode='after')
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self

class ChangeEmailRequest(CamelModel):
    new_email: Email
    password: str

# --- VENDORS ---
class VendorOut(CamelModel):
    id: str
    user_id: str
    store_name: str
    store_description: Optional[str] = None
    business_license: Optional[str] = None
    store_location: Optional[Any] = None
    delivery_areas: List[str] = []
    delivery_radius: int = 10
    delivery_fee: Decimal = Decimal("0")
    free_delivery_threshold: Decimal = Decimal("50")
    is_approved: bool
    rating: Decimal = Decimal("0")
    total_sales: Decimal = Decimal("0")
    created_at: Optional[datetime] = None

    @field_validator('delivery_areas', mode='before')
    def areas_or_empty(cls, v):
        return v or []

class VendorSummary(CamelModel):
    """Delivery terms shown next to a product."""
    store_name: str
    delivery_fee: Decimal = Decimal("0")
    free_delivery_threshold: Decimal = Decimal("50")
    delivery_radius: int = 10
    delivery_areas: List[str] = []

    @field_validator('delivery_areas', mode='before')
    def areas_or_empty(cls, v):
        return v or []

class VendorApply(CamelModel):
    store_name: str = Field(min_length=1)
    store_description: Optional[str] = None
    business_license: Optional[str] = None

class VendorLocationUpdate(CamelModel):
    street: Optional[str] = None
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)
    country: str = "United States"
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

class VendorSettingsUpdate(CamelModel):
    store_name: Optional[str] = Field(default=None, min_length=1)
    store_description: Optional[str] = None
    business_license: Optional[str] = None

class VendorDeliveryUpdate(CamelModel):
    delivery_areas: Optional[List[str]] = None
    delivery_radius: Optional[int] = Field(default=None, ge=1, le=100)
    delivery_fee: Optional[Decimal] = Field(default=None, ge=0)
    free_delivery_threshold: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator('delivery_areas')
    def no_blank_areas(cls, v):
        if v is not None and any(not a.strip() for a in v):
            raise ValueError('Delivery areas must not be blank')
        return v

# --- CATALOG ---
class CategoryOut(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    is_active: bool

class CategoryCreate(CamelModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None

class ProductOut(CamelModel):
    id: str
    vendor_id: str
    category_id: Optional[str] = None
    name: str
    description: str
    price: Decimal
    discount_price: Optional[Decimal] = None
    stock: int
    images: List[str] = []
    sku: str
    available_in_areas: List[str] = []
    requires_shipping: bool
    is_active: bool
    allows_coupons: bool
    rating: Decimal = Decimal("0")
    review_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    vendor: Optional[VendorSummary] = None

    @field_validator('images', 'available_in_areas', mode='before')
    def list_or_empty(cls, v):
        return v or []

class ProductCreate(CamelModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    price: Decimal = Field(gt=0)
    discount_price: Optional[Decimal] = Field(default=None, gt=0)
    stock: int = Field(default=0, ge=0)
    category_id: Optional[str] = None
    images: List[str] = []
    sku: str = Field(min_length=1)
    available_in_areas: List[str] = []
    requires_shipping: bool = True
    is_active: bool = True
    allows_coupons: bool = True

class ProductUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, gt=0)
    discount_price: Optional[Decimal] = Field(default=None, gt=0)
    stock: Optional[int] = Field(default=None, ge=0)
    category_id: Optional[str] = None
    images: Optional[List[str]] = None
    sku: Optional[str] = None
    available_in_areas: Optional[List[str]] = None
    requires_shipping: Optional[bool] = None
    is_active: Optional[bool] = None
    allows_coupons: Optional[bool] = None

class StatsOut(CamelModel):
    total_users: int
    active_stores: int
    products_listed: int

class ImagePath(CamelModel):
    image_path: str

class UploadOut(CamelModel):
    message: str
    image_path: str
    original_name: Optional[str] = None
    size: int

# --- CART / WISHLIST ---
class CartItemOut(CamelModel):
    id: str
    user_id: str
    product_id: str
    quantity: int
    created_at: Optional[datetime] = None
    product: Optional[ProductOut] = None

class CartAdd(CamelModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)

class CartUpdate(CamelModel):
    quantity: int

class WishlistItemOut(CamelModel):
    id: str
    user_id: str
    product_id: str
    created_at: Optional[datetime] = None
    product: Optional[ProductOut] = None

class WishlistAdd(CamelModel):
    product_id: str

# --- ORDERS ---
class DeliveryAddress(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    phone: str = Field(min_length=10)
    street: str = Field(min_length=5)
    city: str = Field(min_length=2)
    state: str = Field(min_length=2)
    zip_code: str = Field(min_length=5)
    country: str = Field(default="United States", min_length=2)

class OrderOut(CamelModel):
    id: str
    user_id: str
    vendor_id: str
    total: Decimal
    status: str
    payment_method: str
    delivery_address: Any
    coupon_code: Optional[str] = None
    discount: Decimal = Decimal("0")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class OrderItemOut(CamelModel):
    id: str
    order_id: str
    product_id: str
    quantity: int
    price: Decimal
    total: Decimal
    product: Optional[ProductOut] = None

class OrderLine(CamelModel):
    product_id: str
    quantity: int = Field(ge=1)

class OrderCreate(CamelModel):
    vendor_id: str
    items: List[OrderLine] = Field(min_length=1)
    delivery_address: DeliveryAddress
    payment_method: str = Field(default="cod", min_length=1)
    coupon_code: Optional[str] = None

class OrderStatusUpdate(CamelModel):
    status: Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]

class UnreviewedOrder(CamelModel):
    order: OrderOut
    products: List[ProductOut]

# --- REVIEWS ---
class ReviewOut(CamelModel):
    id: str
    user_id: str
    product_id: str
    vendor_id: str
    rating: int
    comment: Optional[str] = None
    images: List[str] = []
    created_at: Optional[datetime] = None

    @field_validator('images', mode='before')
    def list_or_empty(cls, v):
        return v or []

class ReviewAuthor(CamelModel):
    id: str
    first_name: str
    last_name: str

class ReviewedProduct(CamelModel):
    id: str
    name: str

class RecentReviewOut(ReviewOut):
    user: ReviewAuthor
    product: ReviewedProduct

class ReviewCreate(CamelModel):
    product_id: str
    vendor_id: Optional[str] = None
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=500)
    images: List[str] = Field(default=[], max_length=5)

    @field_validator('images')
    def review_upload_paths(cls, v):
        for path in v:
            if not path.startswith("/uploads/reviews/"):
                raise ValueError('Review images must be uploaded first')
        return v

# --- COUPONS ---
class CouponOut(CamelModel):
    id: str
    vendor_id: str
    code: str
    discount_type: str
    discount_value: Decimal
    min_order_amount: Optional[Decimal] = None
    max_discount: Optional[Decimal] = None
    expiry_date: Optional[datetime] = None
    is_active: bool
    usage_limit: Optional[int] = None
    used_count: int = 0
    created_at: Optional[datetime] = None

class CouponCreate(CamelModel):
    code: str = Field(min_length=3, max_length=50)
    discount_type: Literal["percentage", "fixed"]
    discount_value: Decimal = Field(gt=0)
    min_order_amount: Optional[Decimal] = Field(default=None, ge=0)
    max_discount: Optional[Decimal] = Field(default=None, ge=0)
    expiry_date: Optional[datetime] = None
    is_active: bool = True
    usage_limit: Optional[int] = Field(default=None, ge=1)

    @field_validator('code')
    def upper_code(cls, v):
        return v.strip().upper()

    @model_validator(mode='after')
    def percentage_range(self):
        if self.discount_type == "percentage" and self.discount_value > 100:
            raise ValueError('Percentage discount cannot exceed 100')
        return self

# --- ADMIN ---
class UserStatusUpdate(CamelModel):
    is_active: bool

class UserRoleUpdate(CamelModel):
    role: Literal["user", "vendor", "admin"]

class AdminStats(CamelModel):
    total_users: int
    total_vendors: int
    total_products: int
    total_orders: int
    revenue: Decimal
