"""
认证路由
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.entities import User
from app.models.schemas import (
    LoginRequest, TokenResponse, PasswordChange, UserResponse,
    GuestRegister, PasswordReset, PasswordResetResponse
)
from app.services.user_service import UserService
from app.security.auth import get_current_user, require_manager
from app.routers.errors import http_error

router = APIRouter(prefix="/auth", tags=["认证"])


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """用户登录"""
    service = UserService(db)
    try:
        result = service.authenticate(data.username, data.password)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="用户名或密码错误"
        )
    return result


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """获取当前用户信息"""
    return current_user


@router.post("/change-password")
def change_password(
    data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """修改密码"""
    service = UserService(db)
    try:
        service.change_password(current_user.id, data.old_password, data.new_password)
        return {"message": "密码修改成功"}
    except ValueError as e:
        raise http_error(e)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(data: GuestRegister, db: Session = Depends(get_db)):
    """客人自助注册，只能注册客人账号"""
    try:
        return UserService(db).register_guest(data)
    except ValueError as e:
        raise http_error(e)


@router.post("/reset-password", response_model=PasswordResetResponse)
def reset_password(
    data: PasswordReset,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """经理按邮箱重置用户密码，返回临时密码"""
    try:
        temporary_password = UserService(db).reset_password(data.email)
    except ValueError as e:
        raise http_error(e)
    return {"message": "密码已重置，用户登录后需修改密码", "temporary_password": temporary_password}
