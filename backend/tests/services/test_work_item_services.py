"""
工单服务测试
清洁任务、维修请求、服务订单、客人反馈
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal

from app.models.entities import (
    Reservation, ReservationStatus, RoomStatus, Service, CleaningTask, User, UserRole,
    CleaningStatus, MaintenanceStatus, ServiceOrderStatus, FeedbackStatus, Priority
)
from app.models.schemas import (
    CleaningTaskCreate, MaintenanceRequestCreate, ServiceOrderCreate, ServiceOrderUpdate,
    ServiceCreate, ServiceUpdate, FeedbackCreate,
    CleaningTaskUpdate, MaintenanceRequestUpdate, FeedbackUpdate
)
from app.services.errors import InvalidOperationError, NotFoundError
from app.services.cleaning_service import CleaningService
from app.services.maintenance_service import MaintenanceService
from app.services.service_order_service import ServiceCatalogService, ServiceOrderService
from app.services.feedback_service import FeedbackService
from app.services.reservation_service import ReservationService


@pytest.fixture
def reservation(db_session, sample_guest, sample_room_type, sample_room, stay_dates):
    rsv = Reservation(
        reservation_no="RES-TEST-0001",
        guest_id=sample_guest.id,
        room_type_id=sample_room_type.id,
        room_id=sample_room.id,
        check_in_date=stay_dates[0],
        check_out_date=stay_dates[1],
        total_price=Decimal("200.00"),
        status=ReservationStatus.CHECKED_IN
    )
    db_session.add(rsv)
    db_session.commit()
    db_session.refresh(rsv)
    return rsv


@pytest.fixture
def breakfast(db_session):
    service = Service(name="早餐", service_type="food", price=Decimal("58.00"))
    db_session.add(service)
    db_session.commit()
    db_session.refresh(service)
    return service


class TestCleaningService:

    def test_lifecycle(self, db_session, sample_room, housekeeper_user, receptionist_user):
        service = CleaningService(db_session)
        task = service.create_task(CleaningTaskCreate(room_id=sample_room.id), created_by=receptionist_user.id)
        assert task.status == CleaningStatus.PENDING
        assert sample_room.needs_cleaning is True

        task = service.assign(task.id, housekeeper_user.id)
        assert task.assigned_to_id == housekeeper_user.id

        task = service.start(task.id, housekeeper_user.id)
        assert task.status == CleaningStatus.IN_PROGRESS
        assert task.started_at is not None

        task = service.complete(task.id, housekeeper_user.id, "已更换床品")
        assert task.status == CleaningStatus.COMPLETED
        assert task.completed_by == housekeeper_user.id
        assert task.resolution_notes == "已更换床品"
        assert sample_room.needs_cleaning is False
        assert sample_room.last_cleaned is not None
        assert sample_room.cleaned_by_id == housekeeper_user.id

    def test_cannot_complete_twice(self, db_session, sample_room, housekeeper_user):
        service = CleaningService(db_session)
        task = service.create_task(CleaningTaskCreate(room_id=sample_room.id))
        service.complete(task.id, housekeeper_user.id)

        with pytest.raises(InvalidOperationError, match="已完成"):
            service.complete(task.id, housekeeper_user.id)
        with pytest.raises(InvalidOperationError, match="已完成"):
            service.cancel(task.id, housekeeper_user.id)

    def test_start_claims_unassigned_task(self, db_session, sample_room, housekeeper_user):
        service = CleaningService(db_session)
        task = service.create_task(CleaningTaskCreate(room_id=sample_room.id))
        task = service.start(task.id, housekeeper_user.id)
        assert task.assigned_to_id == housekeeper_user.id

        with pytest.raises(InvalidOperationError, match="不能开始"):
            service.start(task.id, housekeeper_user.id)

    def test_cannot_assign_guest(self, db_session, sample_room, sample_guest):
        service = CleaningService(db_session)
        task = service.create_task(CleaningTaskCreate(room_id=sample_room.id))
        with pytest.raises(InvalidOperationError, match="不是在职员工"):
            service.assign(task.id, sample_guest.id)

    def test_pick_housekeeper_balances_load(self, db_session, sample_room, housekeeper_user):
        second = User(username="cleaner2", email="c2@hotel.local", password_hash="x",
                      first_name="二", last_name="保洁", role=UserRole.HOUSEKEEPER)
        db_session.add(second)
        db_session.commit()

        service = CleaningService(db_session)
        service.create_task(CleaningTaskCreate(room_id=sample_room.id, assigned_to_id=housekeeper_user.id))
        assert service.pick_housekeeper().id == second.id

    def test_statistics(self, db_session, sample_room, housekeeper_user):
        service = CleaningService(db_session)
        service.create_task(CleaningTaskCreate(room_id=sample_room.id, priority=Priority.HIGH,
                                               assigned_to_id=housekeeper_user.id))
        task = service.create_task(CleaningTaskCreate(room_id=sample_room.id))
        service.cancel(task.id, housekeeper_user.id, "重复")

        stats = service.get_statistics()
        assert stats['total'] == 2
        assert stats['by_status']['pending'] == 1
        assert stats['by_status']['cancelled'] == 1
        assert stats['by_priority']['high'] == 1
        assert stats['by_assignee'] == {housekeeper_user.id: 1}
        assert len(service.get_open_items()) == 1
        assert len(service.get_tasks_for_room(sample_room.id)) == 2

    def test_update_writes_only_given_fields(self, db_session, sample_room, housekeeper_user):
        service = CleaningService(db_session)
        task = service.create_task(CleaningTaskCreate(room_id=sample_room.id, description="更换床品"))

        task = service.update(task.id, CleaningTaskUpdate(priority=Priority.URGENT,
                                                          assigned_to_id=housekeeper_user.id))
        assert task.priority == Priority.URGENT
        assert task.assigned_to_id == housekeeper_user.id
        assert task.description == "更换床品"

    def test_update_rejects_guest_assignee(self, db_session, sample_room, sample_guest):
        service = CleaningService(db_session)
        task = service.create_task(CleaningTaskCreate(room_id=sample_room.id))
        with pytest.raises(InvalidOperationError, match="不是在职员工"):
            service.update(task.id, CleaningTaskUpdate(assigned_to_id=sample_guest.id))

    def test_finished_task_cannot_be_changed_or_deleted(self, db_session, sample_room, housekeeper_user):
        service = CleaningService(db_session)
        task = service.create_task(CleaningTaskCreate(room_id=sample_room.id))
        service.complete(task.id, housekeeper_user.id)

        with pytest.raises(InvalidOperationError, match="已完成"):
            service.update(task.id, CleaningTaskUpdate(description="补做"))
        with pytest.raises(InvalidOperationError, match="不能删除"):
            service.delete(task.id)

    def test_delete_last_open_task_clears_cleaning_flag(self, db_session, sample_room):
        service = CleaningService(db_session)
        first = service.create_task(CleaningTaskCreate(room_id=sample_room.id))
        second = service.create_task(CleaningTaskCreate(room_id=sample_room.id))

        service.delete(first.id)
        assert sample_room.needs_cleaning is True
        assert service.get(first.id) is None

        service.delete(second.id)
        assert sample_room.needs_cleaning is False

    def test_delete_missing_task(self, db_session):
        with pytest.raises(NotFoundError):
            CleaningService(db_session).delete(999)


class TestMaintenanceService:

    def test_urgent_request_blocks_room(self, db_session, sample_room, housekeeper_user):
        service = MaintenanceService(db_session)
        request = service.create_request(MaintenanceRequestCreate(
            room_id=sample_room.id, issue_description="空调漏水", priority=Priority.URGENT
        ), reported_by=housekeeper_user.id)

        assert request.status == MaintenanceStatus.REPORTED
        assert sample_room.status == RoomStatus.MAINTENANCE

        request = service.assign(request.id, housekeeper_user.id)
        assert request.status == MaintenanceStatus.IN_PROGRESS

        service.complete(request.id, housekeeper_user.id, "已更换水管")
        assert sample_room.status == RoomStatus.AVAILABLE

    def test_low_priority_does_not_block(self, db_session, sample_room):
        service = MaintenanceService(db_session)
        service.create_request(MaintenanceRequestCreate(
            room_id=sample_room.id, issue_description="灯泡不亮", priority=Priority.LOW
        ))
        assert sample_room.status == RoomStatus.AVAILABLE

    def test_occupied_room_keeps_guest(self, db_session, sample_room):
        sample_room.status = RoomStatus.OCCUPIED
        db_session.commit()

        MaintenanceService(db_session).create_request(MaintenanceRequestCreate(
            room_id=sample_room.id, issue_description="马桶堵塞", priority=Priority.HIGH
        ))
        assert sample_room.status == RoomStatus.OCCUPIED

    def test_room_restored_only_after_last_blocking_request(self, db_session, sample_room, manager_user):
        service = MaintenanceService(db_session)
        first = service.create_request(MaintenanceRequestCreate(
            room_id=sample_room.id, issue_description="门锁故障", priority=Priority.HIGH
        ))
        second = service.create_request(MaintenanceRequestCreate(
            room_id=sample_room.id, issue_description="窗户破损", priority=Priority.HIGH
        ))

        service.cancel(first.id, manager_user.id, "误报")
        assert sample_room.status == RoomStatus.MAINTENANCE

        service.complete(second.id, manager_user.id)
        assert sample_room.status == RoomStatus.AVAILABLE

    def test_restore_to_reserved_when_booked(self, db_session, sample_room, manager_user,
                                             sample_guest, sample_room_type, stay_dates):
        service = MaintenanceService(db_session)
        request = service.create_request(MaintenanceRequestCreate(
            room_id=sample_room.id, issue_description="热水器故障", priority=Priority.HIGH
        ))
        db_session.add(Reservation(
            reservation_no="RES-TEST-0002", guest_id=sample_guest.id,
            room_type_id=sample_room_type.id, room_id=sample_room.id,
            check_in_date=stay_dates[0], check_out_date=stay_dates[1],
            total_price=Decimal("200.00"), status=ReservationStatus.CONFIRMED
        ))
        db_session.commit()

        service.complete(request.id, manager_user.id)
        assert sample_room.status == RoomStatus.RESERVED

    def test_unknown_room(self, db_session):
        with pytest.raises(NotFoundError):
            MaintenanceService(db_session).create_request(MaintenanceRequestCreate(
                room_id=404, issue_description="不存在的房间"
            ))

    def test_priority_change_moves_room_in_and_out_of_maintenance(self, db_session, sample_room):
        service = MaintenanceService(db_session)
        request = service.create_request(MaintenanceRequestCreate(
            room_id=sample_room.id, issue_description="空调异响", priority=Priority.LOW
        ))
        assert sample_room.status == RoomStatus.AVAILABLE

        service.update(request.id, MaintenanceRequestUpdate(priority=Priority.URGENT))
        assert sample_room.status == RoomStatus.MAINTENANCE

        request = service.update(request.id, MaintenanceRequestUpdate(priority=Priority.MEDIUM))
        assert sample_room.status == RoomStatus.AVAILABLE
        assert request.issue_description == "空调异响"

    def test_deleting_blocking_request_restores_room(self, db_session, sample_room):
        service = MaintenanceService(db_session)
        request = service.create_request(MaintenanceRequestCreate(
            room_id=sample_room.id, issue_description="天花板渗水", priority=Priority.HIGH
        ))
        assert sample_room.status == RoomStatus.MAINTENANCE

        assert service.delete(request.id) is True
        assert sample_room.status == RoomStatus.AVAILABLE
        assert service.get(request.id) is None


class TestServiceOrders:

    def test_create_order_prices_from_catalog(self, db_session, reservation, breakfast, receptionist_user):
        order = ServiceOrderService(db_session).create_order(ServiceOrderCreate(
            reservation_id=reservation.id, service_id=breakfast.id, quantity=2
        ), created_by=receptionist_user.id)

        assert order.status == ServiceOrderStatus.PENDING
        assert order.unit_price == Decimal("58.00")
        assert order.total_price == Decimal("116.00")

    def test_update_quantity_reprices(self, db_session, reservation, breakfast):
        service = ServiceOrderService(db_session)
        order = service.create_order(ServiceOrderCreate(reservation_id=reservation.id, service_id=breakfast.id))
        order = service.update_order(order.id, ServiceOrderUpdate(quantity=3))
        assert order.total_price == Decimal("174.00")

    def test_inactive_service_rejected(self, db_session, reservation, breakfast):
        ServiceCatalogService(db_session).update_service(breakfast.id, ServiceUpdate(is_active=False))
        with pytest.raises(InvalidOperationError, match="已停售"):
            ServiceOrderService(db_session).create_order(ServiceOrderCreate(
                reservation_id=reservation.id, service_id=breakfast.id
            ))

    def test_cancelled_reservation_rejected(self, db_session, reservation, breakfast):
        reservation.status = ReservationStatus.CANCELLED
        db_session.commit()
        with pytest.raises(InvalidOperationError):
            ServiceOrderService(db_session).create_order(ServiceOrderCreate(
                reservation_id=reservation.id, service_id=breakfast.id
            ))

    def test_completed_order_cannot_be_deleted(self, db_session, reservation, breakfast, receptionist_user):
        service = ServiceOrderService(db_session)
        order = service.create_order(ServiceOrderCreate(reservation_id=reservation.id, service_id=breakfast.id))
        service.complete(order.id, receptionist_user.id)

        with pytest.raises(InvalidOperationError, match="不能删除"):
            service.delete_order(order.id)
        assert service.get_statistics()['completed_revenue'] == Decimal("58.00")

    def test_pending_order_can_be_deleted(self, db_session, reservation, breakfast):
        service = ServiceOrderService(db_session)
        order = service.create_order(ServiceOrderCreate(reservation_id=reservation.id, service_id=breakfast.id))

        assert service.delete_order(order.id) is True
        assert service.get_orders_by_reservation(reservation.id) == []

    def test_cancelled_order_cannot_be_updated(self, db_session, reservation, breakfast, receptionist_user):
        service = ServiceOrderService(db_session)
        order = service.create_order(ServiceOrderCreate(reservation_id=reservation.id, service_id=breakfast.id))
        service.cancel(order.id, receptionist_user.id, "客人改主意")

        with pytest.raises(InvalidOperationError, match="已取消"):
            service.update_order(order.id, ServiceOrderUpdate(quantity=2))

    def test_catalog_delete_rules(self, db_session, reservation, breakfast):
        catalog = ServiceCatalogService(db_session)
        with pytest.raises(InvalidOperationError, match="已存在"):
            catalog.create_service(ServiceCreate(name="早餐", service_type="food", price=Decimal("1")))

        ServiceOrderService(db_session).create_order(ServiceOrderCreate(
            reservation_id=reservation.id, service_id=breakfast.id
        ))
        with pytest.raises(InvalidOperationError, match="停用"):
            catalog.delete_service(breakfast.id)


class TestFeedback:

    def test_feedback_fills_guest_from_reservation(self, db_session, reservation, sample_guest):
        feedback = FeedbackService(db_session).create_feedback(FeedbackCreate(
            reservation_id=reservation.id, rating=4, subject="很好", category="room"
        ))
        assert feedback.guest_id == sample_guest.id
        assert feedback.guest_name == sample_guest.full_name
        assert feedback.status == FeedbackStatus.OPEN
        assert feedback.is_resolved is False

    def test_resolve_and_statistics(self, db_session, manager_user):
        service = FeedbackService(db_session)
        assert service.get_average_rating() is None

        first = service.create_feedback(FeedbackCreate(rating=5, guest_name="访客"))
        service.create_feedback(FeedbackCreate(rating=2, guest_name="访客", category="service"))
        resolved = service.resolve(first.id, manager_user.id, "已致谢")

        assert resolved.is_resolved is True
        assert service.get_average_rating() == 3.5
        assert len(service.get_feedback(unresolved_only=True)) == 1

        stats = service.get_statistics()
        assert stats['by_rating'][5] == 1
        assert stats['by_category'] == {'general': 1, 'service': 1}
        assert stats['average_rating'] == 3.5

    def test_feedback_rejects_reservation_of_other_guest(self, db_session, reservation):
        other = User(username="guest2", email="guest2@hotel.local", password_hash="x",
                     first_name="二", last_name="客人", role=UserRole.GUEST)
        db_session.add(other)
        db_session.commit()

        with pytest.raises(InvalidOperationError, match="不属于"):
            FeedbackService(db_session).create_feedback(FeedbackCreate(
                guest_id=other.id, reservation_id=reservation.id, rating=1
            ))
        assert FeedbackService(db_session).get_feedback() == []

    def test_update_and_delete_feedback(self, db_session, manager_user):
        service = FeedbackService(db_session)
        feedback = service.create_feedback(FeedbackCreate(rating=2, guest_name="访客", subject="噪音"))

        feedback = service.update(feedback.id, FeedbackUpdate(rating=4, category="room"))
        assert feedback.rating == 4
        assert feedback.category == "room"
        assert feedback.subject == "噪音"

        service.resolve(feedback.id, manager_user.id)
        with pytest.raises(InvalidOperationError, match="不能删除"):
            service.delete(feedback.id)


class TestCheckoutTasks:

    @pytest.fixture
    def departing(self, db_session, sample_guest, sample_room_type):
        """今日预离的在住预订工厂"""
        def _departing(room, number):
            room.status = RoomStatus.OCCUPIED
            rsv = Reservation(
                reservation_no=f"RES-TEST-01{number}",
                guest_id=sample_guest.id,
                room_type_id=sample_room_type.id,
                room_id=room.id,
                check_in_date=date.today() - timedelta(days=2),
                check_out_date=date.today(),
                total_price=Decimal("200.00"),
                status=ReservationStatus.CHECKED_IN
            )
            db_session.add(rsv)
            db_session.commit()
            db_session.refresh(rsv)
            return rsv
        return _departing

    def test_one_task_per_departing_room(self, db_session, departing, sample_room, sample_room_102,
                                         housekeeper_user, manager_user):
        departing(sample_room, 1)
        departing(sample_room_102, 2)

        service = CleaningService(db_session)
        tasks = service.create_checkout_tasks(date.today(), created_by=manager_user.id)

        assert sorted(task.room_id for task in tasks) == sorted([sample_room.id, sample_room_102.id])
        assert all(task.priority == Priority.HIGH for task in tasks)
        assert all(task.assigned_to_id == housekeeper_user.id for task in tasks)
        assert all(task.created_by == manager_user.id for task in tasks)

        # 已有未完成任务的房间不重复生成
        assert service.create_checkout_tasks(date.today()) == []

    def test_other_dates_and_statuses_skipped(self, db_session, departing, sample_room):
        rsv = departing(sample_room, 1)
        service = CleaningService(db_session)
        assert service.create_checkout_tasks(date.today() + timedelta(days=1)) == []

        rsv.status = ReservationStatus.CONFIRMED
        db_session.commit()
        assert service.create_checkout_tasks(date.today()) == []

    def test_check_out_reuses_open_task(self, db_session, departing, sample_room, receptionist_user):
        rsv = departing(sample_room, 1)
        CleaningService(db_session).create_checkout_tasks(date.today())

        ReservationService(db_session).check_out(rsv.id, receptionist_user.id)

        assert db_session.query(CleaningTask).filter(CleaningTask.room_id == sample_room.id).count() == 1
        assert sample_room.status == RoomStatus.AVAILABLE
        assert sample_room.needs_cleaning is True
