import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import get_current_principal
from ..database import SessionLocal, get_db
from ..domain.access import Principal, Role
from ..domain.session import Credentials, DatabaseAuthBackend
from ..errors import NotFound, ValidationError
from ..models import User
from ..rate_limiter import enforce_login_rate_limit
from ..schemas import AuthResponse, LoginRequest, MessageResponse, RegisterRequest, UserResponse
from ..security_utils import create_access_token, hash_password_bcrypt

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def get_auth_backend() -> DatabaseAuthBackend:
    return DatabaseAuthBackend(SessionLocal)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    """Create a patient account and sign it in"""
    duplicate = ValidationError({"email": "An account with this email already exists"})
    if db.query(User).filter(User.email == data.email).first():
        raise duplicate

    user = User(
        email=data.email,
        password_hash=hash_password_bcrypt(data.password),
        full_name=data.fullName,
        role=Role.PATIENT.value,
        phone=data.phone,
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        # A concurrent registration took the email between the check and the insert
        db.rollback()
        logger.info(f"👤 Registration race lost for {data.email}")
        raise duplicate from e
    db.refresh(user)
    logger.info(f"👤 Registered patient {user.email} ({user.id})")

    token = create_access_token(user.id, user.role)
    return AuthResponse(token=token, user=Principal.from_user(user).to_dict())


@router.post("/login", response_model=AuthResponse)
def login(
    data: LoginRequest,
    request: Request,
    backend: DatabaseAuthBackend = Depends(get_auth_backend),
):
    """Exchange email and password for an access token"""
    enforce_login_rate_limit(request, data.email)
    result = backend.login(Credentials(email=data.email, password=data.password))
    return AuthResponse(token=result.token, user=result.principal.to_dict())


@router.post("/logout", response_model=MessageResponse)
def logout(principal: Principal = Depends(get_current_principal)):
    """Tokens are stateless; the client discards its session record"""
    logger.info(f"👋 Logout for {principal.id}")
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=UserResponse)
def get_me(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    """Get current authenticated user"""
    user = db.query(User).filter(User.id == principal.id).first()
    if not user:
        raise NotFound("User not found", resource="user", id=principal.id)
    return UserResponse.from_user(user)
