"""
用户服务
管理员工和客人账号、角色与认证
"""
import logging
import secrets
from typing import List, Optional
from sqlalchemy.orm import Session
from app.models.entities import User, UserRole, Reservation
from app.models.schemas import UserCreate, UserUpdate, GuestRegister
from app.security.auth import get_password_hash, verify_password, create_access_token
from app.services.errors import NotFoundError, InvalidOperationError

logger = logging.getLogger(__name__)


class UserService:
    """用户服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_users(self, role: Optional[UserRole] = None,
                  is_active: Optional[bool] = None) -> List[User]:
        """获取用户列表"""
        query = self.db.query(User)

        if role:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active == is_active)

        return query.order_by(User.last_name, User.first_name).all()

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def _require_user(self, user_id: int) -> User:
        user = self.get_user(user_id)
        if not user:
            raise NotFoundError(f"用户 {user_id} 不存在")
        return user

    def _check_email_free(self, email: Optional[str], exclude_id: Optional[int] = None):
        if not email:
            return
        query = self.db.query(User).filter(User.email == email)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise InvalidOperationError(f"邮箱 '{email}' 已被使用")

    def create_user(self, data: UserCreate) -> User:
        """创建用户"""
        if self.get_user_by_username(data.username):
            raise InvalidOperationError(f"用户名 '{data.username}' 已存在")
        self._check_email_free(data.email)

        values = data.model_dump(exclude={'password'})
        user = User(password_hash=get_password_hash(data.password), **values)
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info("创建用户 %s (%s)", user.username, user.role.value)
        return user

    def register_guest(self, data: GuestRegister) -> User:
        """客人自助注册"""
        return self.create_user(UserCreate(role=UserRole.GUEST, **data.model_dump()))

    def update_user(self, user_id: int, data: UserUpdate) -> User:
        """更新用户资料"""
        user = self._require_user(user_id)
        update_data = data.model_dump(exclude_unset=True)

        if 'email' in update_data:
            self._check_email_free(update_data['email'], exclude_id=user_id)

        password = update_data.pop('password', None)
        if password:
            user.password_hash = get_password_hash(password)

        for key, value in update_data.items():
            setattr(user, key, value)

        self.db.commit()
        self.db.refresh(user)
        return user

    def _ensure_manager_remains(self, user: User):
        """系统需至少保留一个活跃经理"""
        if user.role != UserRole.MANAGER or not user.is_active:
            return
        manager_count = self.db.query(User).filter(
            User.role == UserRole.MANAGER,
            User.is_active == True  # noqa: E712
        ).count()
        if manager_count <= 1:
            raise InvalidOperationError("系统需至少保留一个活跃的经理账号")

    def change_role(self, user_id: int, role: UserRole) -> User:
        """变更角色"""
        user = self._require_user(user_id)
        if role != UserRole.MANAGER:
            self._ensure_manager_remains(user)
        user.role = role
        self.db.commit()
        self.db.refresh(user)
        logger.info("用户 %s 角色变更为 %s", user.username, role.value)
        return user

    def activate_user(self, user_id: int) -> User:
        user = self._require_user(user_id)
        user.is_active = True
        self.db.commit()
        self.db.refresh(user)
        return user

    def deactivate_user(self, user_id: int) -> User:
        user = self._require_user(user_id)
        self._ensure_manager_remains(user)
        user.is_active = False
        self.db.commit()
        self.db.refresh(user)
        return user

    def delete_user(self, user_id: int) -> bool:
        """删除用户，有预订记录的用户只能停用"""
        user = self._require_user(user_id)
        has_reservations = self.db.query(Reservation).filter(
            Reservation.guest_id == user_id
        ).count() > 0
        if has_reservations:
            raise InvalidOperationError("该用户存在预订记录，无法删除，请改为停用")
        self._ensure_manager_remains(user)

        self.db.delete(user)
        self.db.commit()
        return True

    def change_password(self, user_id: int, old_password: str, new_password: str) -> bool:
        """修改密码（本人操作）"""
        user = self._require_user(user_id)
        if not verify_password(old_password, user.password_hash):
            raise InvalidOperationError("原密码错误")

        user.password_hash = get_password_hash(new_password)
        user.password_reset_required = False
        self.db.commit()
        return True

    def reset_password(self, email: str) -> str:
        """
        按邮箱重置密码
        生成临时密码并要求下次登录后修改，返回临时密码由经理转交
        """
        user = self.db.query(User).filter(User.email == email).first()
        if not user:
            raise NotFoundError(f"邮箱 {email} 未注册")

        temporary_password = secrets.token_urlsafe(9)
        user.password_hash = get_password_hash(temporary_password)
        user.password_reset_required = True
        self.db.commit()
        logger.info("用户 %s 密码已重置", user.username)
        return temporary_password

    def authenticate(self, username: str, password: str) -> Optional[dict]:
        """认证登录，失败返回 None"""
        user = self.get_user_by_username(username)
        if not user or not verify_password(password, user.password_hash):
            logger.warning("用户 %s 登录失败", username)
            return None

        if not user.is_active:
            raise InvalidOperationError("账号已停用")

        return {
            'access_token': create_access_token(user.id, user.role),
            'token_type': 'bearer',
            'user': user
        }

    def list_roles(self) -> List[str]:
        return [role.value for role in UserRole]
