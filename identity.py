from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import Settings
from database import create_document, ensure_object_id, serialize
from errors import AlreadyExists, InvalidCredentials, InvalidToken, NotFound
from schemas import Identity, UserInput

logger = structlog.get_logger(__name__)


class IdentityStore:
    """Sellers and their credentials. Issues and verifies signed session tokens."""

    collection_name = "user"

    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.collection = db[self.collection_name]
        self.settings = settings
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)

    def verify_password(self, plain_password, hashed_password):
        return self.pwd_context.verify(plain_password, hashed_password)

    def get_password_hash(self, password):
        return self.pwd_context.hash(password)

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None):
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + (
            expires_delta or timedelta(minutes=self.settings.access_token_expire_minutes)
        )
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, self.settings.secret_key, algorithm=self.settings.algorithm)

    def create_identity(self, user: UserInput) -> dict:
        if self.collection.find_one({"email": user.email}):
            raise AlreadyExists("User already exists.")
        data = user.model_dump(exclude={"password"})
        data["password_hash"] = self.get_password_hash(user.password)
        try:
            user_id = create_document(self.db, self.collection_name, data)
        except DuplicateKeyError:
            raise AlreadyExists("User already exists.")
        logger.info("User created", user_id=str(user_id))
        return self.get(user_id)

    def get(self, user_id) -> dict:
        doc = self.collection.find_one({"_id": ensure_object_id(user_id)}, {"password_hash": 0})
        if not doc:
            raise NotFound("User not found.")
        return serialize(doc)

    def authenticate(self, email: str, password: str) -> str:
        user = self.collection.find_one({"email": email})
        if not user:
            raise NotFound("User does not exists.")
        if not self.verify_password(password, user.get("password_hash", "")):
            logger.info("Rejected login", user_id=str(user["_id"]))
            raise InvalidCredentials("Incorrect password")
        return self.create_access_token(
            {"sub": str(user["_id"]), "name": user["name"], "surname": user["surname"], "email": user["email"]}
        )

    def verify_token(self, token: str) -> Identity:
        try:
            payload = jwt.decode(token, self.settings.secret_key, algorithms=[self.settings.algorithm])
        except JWTError:
            raise InvalidToken()
        user_id = payload.get("sub")
        if user_id is None:
            raise InvalidToken()
        try:
            return Identity(id=user_id, name=payload["name"], surname=payload["surname"], email=payload["email"])
        except (KeyError, ValidationError):
            raise InvalidToken()
