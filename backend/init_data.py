"""
初始化数据脚本
创建：房型、房间、员工账号、附加服务目录

默认账号（密码均为 123456）：
  manager        张经理       经理
  front1         李前台       前台
  cleaner1       刘阿姨       客房保洁
"""
import sys
sys.path.insert(0, '.')

from datetime import date
from decimal import Decimal
from app.database import SessionLocal, init_db
from app.models.entities import RoomType, Room, RoomStatus, User, UserRole, Service
from app.security.auth import get_password_hash


def init_room_types(db):
    """初始化房型"""
    room_type_defs = [
        {'name': '标间', 'description': '两张单人床', 'base_price': Decimal('288.00'),
         'capacity': 2, 'amenities': 'WiFi,空调,电视'},
        {'name': '大床房', 'description': '一张双人床', 'base_price': Decimal('328.00'),
         'capacity': 2, 'amenities': 'WiFi,空调,电视,浴缸'},
        {'name': '豪华间', 'description': '景观套房', 'base_price': Decimal('588.00'),
         'capacity': 4, 'amenities': 'WiFi,空调,电视,浴缸,迷你吧'},
    ]

    rt_map = {}
    for rt_data in room_type_defs:
        existing = db.query(RoomType).filter(RoomType.name == rt_data['name']).first()
        if not existing:
            existing = RoomType(**rt_data)
            db.add(existing)
            db.flush()
        rt_map[rt_data['name']] = existing

    db.commit()
    print(f"房型初始化完成: 共 {len(rt_map)} 个")
    return rt_map


def init_rooms(db, rt_map):
    """初始化房间 — 2F(201-208)、3F(301-308)"""
    room_configs = {
        2: [(f'20{i}', '标间') for i in range(1, 5)] + [(f'20{i}', '大床房') for i in range(5, 9)],
        3: [(f'30{i}', '大床房') for i in range(1, 5)] + [(f'30{i}', '豪华间') for i in range(5, 9)],
    }

    created = 0
    for floor, configs in room_configs.items():
        for num, type_name in configs:
            existing = db.query(Room).filter(Room.room_number == num).first()
            if not existing:
                room_type = rt_map[type_name]
                db.add(Room(
                    room_number=num, floor=floor,
                    room_type_id=room_type.id,
                    base_price=room_type.base_price,
                    status=RoomStatus.AVAILABLE,
                ))
                created += 1

    db.commit()
    total = db.query(Room).count()
    print(f"房间初始化完成: 新增 {created} 间，共 {total} 间")


def init_users(db):
    """初始化员工账号"""
    users = [
        {'username': 'manager', 'email': 'manager@hotel.local',
         'first_name': '经理', 'last_name': '张', 'role': UserRole.MANAGER},
        {'username': 'front1', 'email': 'front1@hotel.local',
         'first_name': '前台', 'last_name': '李', 'role': UserRole.RECEPTIONIST},
        {'username': 'cleaner1', 'email': 'cleaner1@hotel.local',
         'first_name': '阿姨', 'last_name': '刘', 'role': UserRole.HOUSEKEEPER},
    ]

    created = 0
    for user_data in users:
        if db.query(User).filter(User.username == user_data['username']).first():
            continue
        db.add(User(
            password_hash=get_password_hash('123456'),
            hire_date=date.today(),
            **user_data
        ))
        created += 1

    db.commit()
    print(f"员工初始化完成: 新增 {created} 人")


def init_services(db):
    """初始化附加服务目录"""
    services = [
        {'name': '早餐', 'service_type': 'food', 'price': Decimal('58.00'),
         'description': '自助早餐'},
        {'name': '洗衣', 'service_type': 'laundry', 'price': Decimal('30.00'),
         'description': '按件计费'},
        {'name': '接机', 'service_type': 'transport', 'price': Decimal('150.00'),
         'description': '机场单程接送'},
    ]
    for service_data in services:
        if not db.query(Service).filter(Service.name == service_data['name']).first():
            db.add(Service(**service_data))
    db.commit()
    print("服务目录初始化完成")


def main():
    init_db()
    db = SessionLocal()
    try:
        rt_map = init_room_types(db)
        init_rooms(db, rt_map)
        init_users(db)
        init_services(db)
    finally:
        db.close()


if __name__ == '__main__':
    main()
