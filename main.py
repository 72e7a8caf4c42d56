import os
import re
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, EmailStr, Field
from pymongo import DESCENDING
from pymongo.database import Database

import database
from auth import require_user
from database import PRODUCTS, USERS, get_db, parse_object_id, serialize
from errors import ForbiddenError, NotFoundError, register_exception_handlers
from interests import find_user_interests, list_interests, submit_interest, update_interest_status
from logger import RequestLoggingMiddleware, logger
from schemas import Owner, Product, User, normalize_email

LATEST_PRODUCTS_LIMIT = 6

app = FastAPI(title="KrishiLink API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)


# Request schemas
class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    photo: Optional[str] = None


class ProductIn(BaseModel):
    name: str
    type: Optional[str] = None
    description: Optional[str] = None
    pricePerUnit: Optional[float] = Field(None, ge=0)
    unit: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    location: Optional[str] = None
    image: Optional[str] = None
    ownerName: Optional[str] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    pricePerUnit: Optional[float] = Field(None, ge=0)
    unit: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    location: Optional[str] = None
    image: Optional[str] = None


class InterestIn(BaseModel):
    userName: Optional[str] = None
    quantity: Optional[int] = None
    message: Optional[str] = None


class InterestStatusUpdate(BaseModel):
    status: str


def _insert_result(inserted_id: str) -> dict:
    return {"acknowledged": True, "insertedId": inserted_id}


def _update_result(result) -> dict:
    return {
        "acknowledged": result.acknowledged,
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
    }


def _delete_result(result) -> dict:
    return {"acknowledged": result.acknowledged, "deletedCount": result.deleted_count}


@app.on_event("startup")
def open_database():
    app.state.db = database.connect()
    if app.state.db is not None:
        database.ensure_indexes(app.state.db)


@app.on_event("shutdown")
def close_database():
    database.close(getattr(app.state, "db", None))


@app.get("/")
def read_root():
    return {"message": "KrishiLink API Running"}


@app.get("/test")
def test_database(request: Request):
    return database.health(getattr(request.app.state, "db", None))


# Users
@app.get("/users")
def list_users(db: Database = Depends(get_db)):
    return serialize(database.get_documents(db, USERS))


@app.get("/users/{user_id}")
def get_user(user_id: str, db: Database = Depends(get_db)):
    user = db[USERS].find_one({"_id": parse_object_id(user_id, "user")})
    if not user:
        raise NotFoundError("User not found")
    return serialize(user)


@app.post("/users")
def create_user(payload: User, db: Database = Depends(get_db)):
    uid = database.create_document(db, USERS, payload)
    logger.info("User created", extra={"user_email": payload.email})
    return _insert_result(uid)


@app.put("/users/{user_id}")
def update_user(user_id: str, payload: UserUpdate, db: Database = Depends(get_db)):
    fields = payload.model_dump(exclude_unset=True, exclude_none=True)
    fields["updated_at"] = datetime.now(timezone.utc)
    res = db[USERS].update_one({"_id": parse_object_id(user_id, "user")}, {"$set": fields})
    if res.matched_count == 0:
        raise NotFoundError("User not found")
    return _update_result(res)


@app.delete("/users/{user_id}")
def delete_user(user_id: str, db: Database = Depends(get_db), user: dict = Depends(require_user)):
    res = db[USERS].delete_one({"_id": parse_object_id(user_id, "user")})
    if res.deleted_count == 0:
        raise NotFoundError("User not found")
    logger.info("User deleted", extra={"user_email": user["email"]})
    return _delete_result(res)


# Products
@app.get("/products")
def list_products(db: Database = Depends(get_db)):
    return serialize(database.get_documents(db, PRODUCTS))


@app.get("/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    product = db[PRODUCTS].find_one({"_id": parse_object_id(product_id, "crop")})
    if not product:
        raise NotFoundError("Crop not found")
    return serialize(product)


@app.post("/products")
def create_product(payload: ProductIn, db: Database = Depends(get_db), user: dict = Depends(require_user)):
    data = payload.model_dump(exclude={"ownerName"})
    owner = Owner(ownerEmail=user["email"], ownerName=payload.ownerName or user.get("name"))
    product = Product(owner=owner, **data)
    pid = database.create_document(db, PRODUCTS, product.model_dump(exclude_none=True))
    logger.info("Crop created", extra={"crop_id": pid, "user_email": user["email"]})
    return _insert_result(pid)


@app.put("/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, db: Database = Depends(get_db),
                   user: dict = Depends(require_user)):
    fields = payload.model_dump(exclude_unset=True, exclude_none=True)
    fields["updated_at"] = datetime.now(timezone.utc)
    res = db[PRODUCTS].update_one(
        {"_id": parse_object_id(product_id, "crop"), "owner.ownerEmail": user["email"]},
        {"$set": fields},
    )
    if res.matched_count == 0:
        raise ForbiddenError("Not authorized or crop not found")
    logger.info("Crop updated", extra={"crop_id": product_id, "user_email": user["email"]})
    return _update_result(res)


@app.delete("/products/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db), user: dict = Depends(require_user)):
    res = db[PRODUCTS].delete_one(
        {"_id": parse_object_id(product_id, "crop"), "owner.ownerEmail": user["email"]}
    )
    if res.deleted_count == 0:
        raise ForbiddenError("Not authorized or crop not found")
    logger.info("Crop deleted", extra={"crop_id": product_id, "user_email": user["email"]})
    return _delete_result(res)


@app.get("/latest-products")
def latest_products(db: Database = Depends(get_db)):
    cursor = db[PRODUCTS].find().sort("created_at", DESCENDING).limit(LATEST_PRODUCTS_LIMIT)
    return serialize(list(cursor))


@app.get("/my-posted")
def my_posted(email: Optional[str] = None, db: Database = Depends(get_db), user: dict = Depends(require_user)):
    owner_email = normalize_email(email) if email else user["email"]
    return serialize(database.get_documents(db, PRODUCTS, {"owner.ownerEmail": owner_email}))


@app.get("/search")
def search_products(search: str = "", db: Database = Depends(get_db)):
    query = {"name": {"$regex": re.escape(search), "$options": "i"}} if search else {}
    return serialize(database.get_documents(db, PRODUCTS, query))


# Interests
@app.post("/products/{product_id}/interests")
def create_interest(product_id: str, payload: InterestIn, db: Database = Depends(get_db),
                    user: dict = Depends(require_user)):
    return submit_interest(
        db[PRODUCTS],
        product_id,
        user_email=user["email"],
        user_name=payload.userName or user.get("name"),
        quantity=payload.quantity,
        message=payload.message,
    )


@app.get("/products/{product_id}/interests")
def get_interests(product_id: str, db: Database = Depends(get_db)):
    return list_interests(db[PRODUCTS], product_id)


@app.patch("/products/{crop_id}/interests/{interest_id}")
def set_interest_status(crop_id: str, interest_id: str, payload: InterestStatusUpdate,
                        db: Database = Depends(get_db), user: dict = Depends(require_user)):
    return update_interest_status(db[PRODUCTS], crop_id, interest_id, payload.status, user["email"])


@app.get("/my-interests")
def my_interests(userEmail: Optional[str] = None, db: Database = Depends(get_db),
                 user: dict = Depends(require_user)):
    return find_user_interests(db[PRODUCTS], userEmail or user["email"])


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
