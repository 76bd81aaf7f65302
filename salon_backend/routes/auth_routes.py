import re

from fastapi import APIRouter, Depends, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.auth import jwt_handler
from salon_backend.auth.dependencies import get_current_user
from salon_backend.auth.passwords import hash_password, verify_password
from salon_backend.auth.permissions import is_employee
from salon_backend.core.errors import Conflict, Forbidden, NotAuthenticated, StoreUnavailable
from salon_backend.core.schemas import CamelModel
from salon_backend.database import get_db
from salon_backend.models.user import User, UserRole

router = APIRouter(tags=['auth'])

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MIN_PASSWORD_LENGTH = 6


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    role: str
    is_employee: bool = False


class TokenResponse(CamelModel):
    message: str
    token: str
    token_type: str = 'bearer'
    user: UserResponse


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class RegisterRequest(LoginRequest):
    name: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not EMAIL_PATTERN.match(normalized):
            raise ValueError('Invalid email format')
        return normalized

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) < 2:
            raise ValueError('Name must be at least 2 characters')
        return normalized

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
        return value


def to_user_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, name=user.name, email=user.email, role=user.role, is_employee=is_employee(user))


def issue_token(user: User, message: str) -> TokenResponse:
    token = jwt_handler.create_access_token(subject=user.email, role=user.role)
    return TokenResponse(message=message, token=token, user=to_user_response(user))


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user is None or not verify_password(password, user.hashed_password):
        raise NotAuthenticated('Invalid email or password')
    return user


@router.post('/register', response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    try:
        if db.query(User.id).filter(User.email == data.email).first():
            raise Conflict('Email already registered')

        user = User(
            name=data.name,
            email=data.email,
            hashed_password=hash_password(data.password),
            role=UserRole.CUSTOMER.value,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc

    return issue_token(user, 'User registered successfully')


@router.post('/login', response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = authenticate(db, data.email, data.password)
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc
    return issue_token(user, 'Login successful')


@router.post('/employee-login', response_model=TokenResponse)
def employee_login(data: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = authenticate(db, data.email, data.password)
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc
    if not is_employee(user):
        raise Forbidden('Employee access only')
    return issue_token(user, 'Employee login successful')


@router.get('/verify')
def verify(current_user: User = Depends(get_current_user)):
    return {'message': 'Token is valid', 'user': to_user_response(current_user).model_dump(by_alias=True)}


@router.get('/me', response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return to_user_response(current_user)
