"""
Database Schemas for KrishiLink

Each Pydantic model represents a document stored in MongoDB.
- User -> "users"
- Product -> "products" (embeds a list of Interest)
"""

from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Literal, Optional

from bson import ObjectId
from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from errors import ValidationError

InterestStatus = Literal["pending", "accepted", "rejected"]

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"

# Allowed status moves. accepted and rejected are terminal.
STATUS_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PENDING: frozenset({ACCEPTED, REJECTED}),
    ACCEPTED: frozenset(),
    REJECTED: frozenset(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(value: str) -> str:
    """Return the form EmailStr stores, so filters compare like with like."""
    try:
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError("Invalid email", error=str(e))


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    photo: Optional[str] = Field(None, description="Profile photo URL")


class Owner(BaseModel):
    ownerEmail: EmailStr = Field(..., description="Email of the farmer who posted the crop")
    ownerName: Optional[str] = Field(None, description="Display name of the owner")


class Interest(BaseModel):
    """
    A buyer's purchase interest, embedded in Product.interests
    At most one per userEmail on a product.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    id: ObjectId = Field(default_factory=ObjectId, alias="_id", description="Interest id")
    cropId: str = Field(..., description="Parent product _id as string")
    userEmail: EmailStr = Field(..., description="Email of the interested buyer")
    userName: Optional[str] = Field(None, description="Display name of the buyer")
    quantity: int = Field(..., ge=1, description="Requested quantity")
    message: Optional[str] = Field(None, description="Note to the owner")
    status: InterestStatus = Field(PENDING, description="Moderation status")
    createdAt: datetime = Field(default_factory=utcnow, description="Submission time")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class Product(BaseModel):
    name: str = Field(..., description="Crop name")
    type: Optional[str] = Field(None, description="Crop category, e.g. Vegetable")
    description: Optional[str] = Field(None, description="Short description")
    pricePerUnit: Optional[float] = Field(None, ge=0, description="Price per unit")
    unit: Optional[str] = Field(None, description="Unit of sale, e.g. kg")
    quantity: Optional[int] = Field(None, ge=0, description="Available quantity")
    location: Optional[str] = Field(None, description="Where the crop is")
    image: Optional[str] = Field(None, description="Image URL")
    owner: Owner = Field(..., description="Posting farmer")
    interests: List[Interest] = Field(default_factory=list, description="Purchase interests")
