"""
Pytest 配置和共享 fixtures
"""
import os

# 应用启动时的 init_db 不落盘
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from datetime import date
from decimal import Decimal

from app.database import Base, get_db
from app.models import entities  # noqa: F401
from app.models.entities import User, UserRole, RoomType, Room, RoomStatus
from app.security.auth import get_password_hash, create_access_token
from app.main import app


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _make_user(db_session, username, role, first_name, last_name="测试", password="123456"):
    user = User(
        username=username,
        email=f"{username}@hotel.local",
        password_hash=get_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_active=True
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


# ============== 用户与认证 Fixtures ==============

@pytest.fixture
def manager_user(db_session):
    return _make_user(db_session, "manager", UserRole.MANAGER, "经理")


@pytest.fixture
def receptionist_user(db_session):
    return _make_user(db_session, "front1", UserRole.RECEPTIONIST, "前台")


@pytest.fixture
def housekeeper_user(db_session):
    return _make_user(db_session, "cleaner1", UserRole.HOUSEKEEPER, "保洁")


@pytest.fixture
def sample_guest(db_session):
    """创建测试客人"""
    return _make_user(db_session, "guest1", UserRole.GUEST, "三", last_name="张")


@pytest.fixture
def manager_token(manager_user):
    return create_access_token(manager_user.id, manager_user.role)


@pytest.fixture
def receptionist_token(receptionist_user):
    return create_access_token(receptionist_user.id, receptionist_user.role)


@pytest.fixture
def housekeeper_token(housekeeper_user):
    return create_access_token(housekeeper_user.id, housekeeper_user.role)


@pytest.fixture
def guest_token(sample_guest):
    return create_access_token(sample_guest.id, sample_guest.role)


@pytest.fixture
def manager_auth_headers(manager_token):
    """返回经理认证的请求头"""
    return {"Authorization": f"Bearer {manager_token}"}


@pytest.fixture
def receptionist_auth_headers(receptionist_token):
    """返回前台认证的请求头"""
    return {"Authorization": f"Bearer {receptionist_token}"}


@pytest.fixture
def housekeeper_auth_headers(housekeeper_token):
    """返回保洁认证的请求头"""
    return {"Authorization": f"Bearer {housekeeper_token}"}


@pytest.fixture
def guest_auth_headers(guest_token):
    return {"Authorization": f"Bearer {guest_token}"}


# ============== 房间 Fixtures ==============

@pytest.fixture
def sample_room_type(db_session):
    """创建测试房型"""
    room_type = RoomType(
        name="标准间",
        description="Standard Room",
        base_price=Decimal("100.00"),
        capacity=2,
        amenities="WiFi,空调"
    )
    db_session.add(room_type)
    db_session.commit()
    db_session.refresh(room_type)
    return room_type


def _make_room(db_session, room_type, number, floor=1):
    room = Room(
        room_number=number,
        floor=floor,
        room_type_id=room_type.id,
        base_price=room_type.base_price,
        status=RoomStatus.AVAILABLE
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def sample_room(db_session, sample_room_type):
    """创建101房间"""
    return _make_room(db_session, sample_room_type, "101")


@pytest.fixture
def sample_room_102(db_session, sample_room_type):
    """创建102房间"""
    return _make_room(db_session, sample_room_type, "102")


# ============== 日期 Fixtures ==============

@pytest.fixture
def stay_dates():
    """明年 1 月 10 日入住、12 日离店"""
    year = date.today().year + 1
    return date(year, 1, 10), date(year, 1, 12)
