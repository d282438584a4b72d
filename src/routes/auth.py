"""
Authentication Routes
Registration, login and token management
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from src.config.database import get_db
from src.services.auth_service import auth_service
from src.schemas.auth import Token, RefreshRequest
from src.schemas.user import UserResponse, UserRegister
from src.models.department import Department
from src.models.user import User, UserRole
from src.utils.security import get_password_hash
from src.utils.logger import setup_logger, log_audit

logger = setup_logger()
router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: Session = Depends(get_db)
):
    """
    Self-registration

    New accounts always start as staff; an admin assigns other roles.
    """
    existing = db.query(User).filter(
        (User.email == user_data.email) | (User.username == user_data.username)
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email or username already registered"
        )

    if user_data.employee_number and db.query(User).filter(
        User.employee_number == user_data.employee_number
    ).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Employee number already registered"
        )

    if user_data.department_id and not db.query(Department).filter(
        Department.id == user_data.department_id
    ).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Department {user_data.department_id} does not exist"
        )

    user = User(
        email=user_data.email,
        username=user_data.username,
        full_name=user_data.full_name,
        employee_number=user_data.employee_number,
        position=user_data.position,
        department_id=user_data.department_id,
        phone=user_data.phone,
        hashed_password=get_password_hash(user_data.password),
        role=UserRole.STAFF,
        is_active=True
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    log_audit(user.id, "register", f"username={user.username}")
    logger.info(f"✅ New user registered: {user.username}")
    return user


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    Login endpoint

    OAuth2 compatible token login with username or email
    """
    user = auth_service.authenticate_user(db, form_data.username, form_data.password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"User logged in: {user.username}")
    return auth_service.create_tokens(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(auth_service.get_current_user)
):
    """Get current user information"""
    return current_user


@router.post("/refresh", response_model=Token)
async def refresh_token(
    data: RefreshRequest,
    db: Session = Depends(get_db)
):
    """
    Refresh access token using refresh token
    """
    tokens = auth_service.refresh(db, data.refresh_token)
    if not tokens:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token"
        )
    return tokens
