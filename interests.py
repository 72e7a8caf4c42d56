"""
Interest submission and moderation on product documents.

Interests live in the ``interests`` array of a product. Every mutation here
is a single conditional update on that product: the checks are part of the
update filter, so two concurrent submissions from the same buyer cannot
both be appended. When a conditional update matches nothing, the product is
read once to report why.
"""

from typing import Optional

from pymongo.collection import Collection

from database import parse_object_id, serialize
from errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from logger import logger
from schemas import PENDING, STATUS_TRANSITIONS, Interest, normalize_email


def submit_interest(
    products: Collection,
    crop_id: str,
    user_email: str,
    user_name: Optional[str],
    quantity: Optional[int],
    message: Optional[str] = None,
) -> dict:
    if quantity is None or isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    user_email = normalize_email(user_email)
    crop_oid = parse_object_id(crop_id, "crop")
    interest = Interest(
        cropId=str(crop_oid),
        userEmail=user_email,
        userName=user_name,
        quantity=quantity,
        message=message,
    )

    result = products.update_one(
        {
            "_id": crop_oid,
            "owner.ownerEmail": {"$ne": user_email},
            "interests.userEmail": {"$ne": user_email},
        },
        {"$push": {"interests": interest.to_document()}},
    )

    if result.matched_count == 0:
        crop = products.find_one({"_id": crop_oid})
        if crop is None:
            raise NotFoundError("Crop not found")
        if (crop.get("owner") or {}).get("ownerEmail") == user_email:
            logger.warning("Owner tried to submit interest on own crop",
                           extra={"crop_id": crop_id, "user_email": user_email})
            raise ForbiddenError("Owner cannot submit interest on their own crop")
        logger.warning("Duplicate interest rejected", extra={"crop_id": crop_id, "user_email": user_email})
        raise ConflictError("You've already sent an interest")

    logger.info("Interest submitted", extra={"crop_id": crop_id, "user_email": user_email})
    return {
        "acknowledged": result.acknowledged,
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
        "interestId": str(interest.id),
    }


def update_interest_status(
    products: Collection,
    crop_id: str,
    interest_id: str,
    status: str,
    acting_email: str,
) -> dict:
    if status not in STATUS_TRANSITIONS[PENDING]:
        allowed = ", ".join(sorted(STATUS_TRANSITIONS[PENDING]))
        raise ValidationError(f"Status must be one of: {allowed}", error=status)

    crop_oid = parse_object_id(crop_id, "crop")
    interest_oid = parse_object_id(interest_id, "interest")
    acting_email = normalize_email(acting_email)

    result = products.update_one(
        {
            "_id": crop_oid,
            "owner.ownerEmail": acting_email,
            "interests": {"$elemMatch": {"_id": interest_oid, "status": PENDING}},
        },
        {"$set": {"interests.$.status": status}},
    )

    if result.matched_count == 0:
        crop = products.find_one({"_id": crop_oid, "interests._id": interest_oid})
        if crop is None:
            raise NotFoundError("Interest not found")
        if (crop.get("owner") or {}).get("ownerEmail") != acting_email:
            raise ForbiddenError("Only the crop owner can update interests")
        current = next(i for i in crop["interests"] if i.get("_id") == interest_oid)
        raise ConflictError(
            f"Interest already {current.get('status')}",
            error=f"cannot move from {current.get('status')} to {status}",
        )

    logger.info(
        "Interest status set to %s", status,
        extra={"crop_id": crop_id, "user_email": acting_email},
    )
    return {
        "acknowledged": result.acknowledged,
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
        "modifiedFields": ["interests.$.status"] if result.modified_count else [],
    }


def list_interests(products: Collection, crop_id: str) -> dict:
    crop = products.find_one({"_id": parse_object_id(crop_id, "crop")})
    if crop is None:
        raise NotFoundError("Crop not found")
    crop.setdefault("interests", [])
    return serialize(crop)


def find_user_interests(products: Collection, user_email: str) -> list:
    """Return one entry per product with only the interest sent by user_email."""
    user_email = normalize_email(user_email)
    result = []
    for crop in products.find({"interests.userEmail": user_email}):
        interest = next((i for i in crop.get("interests", []) if i.get("userEmail") == user_email), None)
        if interest is None:
            continue
        result.append({
            "cropId": str(crop["_id"]),
            "cropName": crop.get("name"),
            "interest": serialize(interest),
        })
    return result
