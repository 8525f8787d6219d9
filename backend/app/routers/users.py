"""
用户管理路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.entities import User, UserRole
from app.models.schemas import UserCreate, UserUpdate, UserRoleUpdate, UserResponse
from app.services.user_service import UserService
from app.security.auth import require_manager, require_staff
from app.routers.errors import http_error

router = APIRouter(prefix="/users", tags=["用户管理"])


@router.get("", response_model=List[UserResponse])
def list_users(
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取用户列表"""
    return UserService(db).get_users(role, is_active)


@router.get("/roles", response_model=List[str])
def list_roles(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取角色列表"""
    return UserService(db).list_roles()


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取用户详情"""
    user = UserService(db).get_user(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="用户不存在")
    return user


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """创建用户；前台只能创建客人账号"""
    if current_user.role != UserRole.MANAGER and data.role != UserRole.GUEST:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="只有经理可以创建员工账号")
    try:
        return UserService(db).create_user(data)
    except ValueError as e:
        raise http_error(e)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """更新用户"""
    try:
        return UserService(db).update_user(user_id, data)
    except ValueError as e:
        raise http_error(e)


@router.put("/{user_id}/role", response_model=UserResponse)
def change_role(
    user_id: int,
    data: UserRoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """变更角色"""
    try:
        return UserService(db).change_role(user_id, data.role)
    except ValueError as e:
        raise http_error(e)


@router.post("/{user_id}/activate", response_model=UserResponse)
def activate_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    try:
        return UserService(db).activate_user(user_id)
    except ValueError as e:
        raise http_error(e)


@router.post("/{user_id}/deactivate", response_model=UserResponse)
def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    try:
        return UserService(db).deactivate_user(user_id)
    except ValueError as e:
        raise http_error(e)


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """删除用户"""
    try:
        UserService(db).delete_user(user_id)
        return {"message": "用户已删除"}
    except ValueError as e:
        raise http_error(e)
