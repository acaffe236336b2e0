"""
Order workflow: placement, ownership, cancellation and manager transitions
"""
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from storefront.models import InventoryLog, Order, OrderItem, OrderStatusHistory, Product
from storefront.schemas.order import OrderLineRequest
from storefront.services.order_service import OrderService


def line(product_id, quantity, price):
    return OrderLineRequest(product_id=product_id, quantity=quantity, unit_price=Decimal(price))


def stock(db, product_id):
    return db.scalar(select(Product.stock_quantity).where(Product.product_id == product_id))


def count(db, model):
    return db.scalar(select(func.count()).select_from(model))


@pytest.fixture
def service(db):
    return OrderService(db)


@pytest.fixture
def placed_order(db, users, products, service):
    """User 7 buys 2 x A and 1 x B"""
    lines = [line(1, 2, "3.50"), line(2, 1, "5.00")]
    order_id = service.create_order(7, lines, Decimal("12.00"), notes="ring twice")
    assert order_id is not None
    return order_id


class TestCreateOrder:
    def test_creates_pending_order_and_debits_stock(self, db, placed_order):
        order = db.get(Order, placed_order)
        
        assert order.user_id == 7
        assert order.status == "pending"
        assert order.total_amount == Decimal("12.00")
        assert order.notes == "ring twice"
        assert order.payment_method == "cash_on_delivery"
        assert stock(db, 1) == 8
        assert stock(db, 2) == 0
    
    def test_total_matches_lines(self, db, placed_order):
        order = db.get(Order, placed_order)
        items = db.scalars(select(OrderItem).where(OrderItem.order_id == placed_order)).all()
        
        assert len(items) == 2
        assert abs(sum(i.price * i.quantity for i in items) - order.total_amount) <= Decimal("0.01")
    
    def test_line_prices_do_not_follow_product_price(self, db, placed_order):
        db.get(Product, 1).price = Decimal("9.99")
        db.commit()
        
        item = db.scalars(select(OrderItem).where(OrderItem.product_id == 1)).one()
        assert item.price == Decimal("3.50")
    
    def test_insufficient_stock_rolls_back_everything(self, db, users, products, service):
        order_id = service.create_order(7, [line(2, 5, "5.00")], Decimal("25.00"))
        
        assert order_id is None
        assert count(db, Order) == 0
        assert count(db, OrderItem) == 0
        assert stock(db, 2) == 1
    
    def test_failure_on_later_line_undoes_earlier_lines(self, db, users, products, service):
        lines = [line(1, 3, "3.50"), line(2, 2, "5.00")]
        
        assert service.create_order(7, lines, Decimal("20.50")) is None
        assert count(db, Order) == 0
        assert count(db, OrderItem) == 0
        assert count(db, InventoryLog) == 0
        assert stock(db, 1) == 10
        assert stock(db, 2) == 1
    
    def test_unknown_product_fails(self, db, users, products, service):
        assert service.create_order(7, [line(99, 1, "1.00")], Decimal("1.00")) is None
        assert count(db, Order) == 0
    
    def test_empty_lines_rejected(self, db, users, products, service):
        assert service.create_order(7, [], Decimal("0")) is None
        assert count(db, Order) == 0
    
    def test_mismatched_total_rejected(self, db, users, products, service):
        assert service.create_order(7, [line(1, 2, "3.50")], Decimal("6.00")) is None
        assert count(db, Order) == 0
        assert stock(db, 1) == 10
    
    def test_total_within_rounding_tolerance_accepted(self, db, users, products, service):
        assert service.create_order(7, [line(1, 2, "3.50")], Decimal("7.01")) is not None
    
    def test_stock_decrease_equals_ordered_quantity(self, db, users, products, service):
        before = stock(db, 1) + stock(db, 2)
        service.create_order(7, [line(1, 4, "3.50"), line(2, 1, "5.00")], Decimal("19.00"))
        
        ordered = db.scalar(select(func.sum(OrderItem.quantity)))
        assert before - (stock(db, 1) + stock(db, 2)) == ordered == 5
    
    def test_inventory_movements_logged(self, db, placed_order):
        movements = db.scalars(
            select(InventoryLog).where(InventoryLog.event_type == "order").order_by(InventoryLog.log_id)
        ).all()
        
        assert [(m.product_id, m.before_quantity, m.after_quantity) for m in movements] == [(1, 10, 8), (2, 1, 0)]
        assert all(m.order_id == placed_order for m in movements)
    
    def test_low_stock_logged_when_threshold_reached(self, db, users, products, service):
        service.create_order(7, [line(1, 8, "3.50")], Decimal("28.00"))
        
        low = db.scalars(select(InventoryLog).where(InventoryLog.event_type == "low_stock")).all()
        assert [(m.product_id, m.after_quantity) for m in low] == [(1, 2)]


class TestReads:
    def test_owner_gets_details_with_lines(self, placed_order, service):
        details = service.get_order_details(placed_order, 7)
        
        assert details.order_id == placed_order
        assert details.user_name == "Satsuki"
        assert details.status_text == "Pending Confirmation"
        assert [(i.product_id, i.quantity, i.price) for i in details.items] == [(1, 2, 3.5), (2, 1, 5.0)]
        assert details.items[0].product_name == "Soot Sprite Rice"
        assert details.items[0].subtotal == 7.0
    
    def test_other_user_gets_nothing(self, placed_order, service):
        assert service.get_order_details(placed_order, 2) is None
    
    def test_manager_variant_ignores_owner(self, placed_order, service):
        details = service.get_order_details_as_manager(placed_order)
        
        assert details.user_id == 7
        assert len(details.items) == 2
    
    def test_missing_order(self, users, service):
        assert service.get_order_details(404, 7) is None
        assert service.get_order_details_as_manager(404) is None
    
    def test_list_for_user_newest_first(self, db, users, products, service):
        first = service.create_order(7, [line(1, 1, "3.50")], Decimal("3.50"))
        second = service.create_order(7, [line(1, 1, "3.50")], Decimal("3.50"))
        service.create_order(2, [line(1, 1, "3.50")], Decimal("3.50"))
        
        orders = service.list_orders_for_user(7)
        assert [o.order_id for o in orders] == [second, first]
        assert not hasattr(orders[0], "items")


class TestCancelAsUser:
    def test_cancel_pending(self, db, placed_order, service):
        assert service.cancel_order_as_user(placed_order, 7) is True
        assert db.get(Order, placed_order).status == "cancelled"
    
    def test_cancel_twice_fails(self, db, placed_order, service):
        service.cancel_order_as_user(placed_order, 7)
        
        assert service.cancel_order_as_user(placed_order, 7) is False
        assert db.get(Order, placed_order).status == "cancelled"
    
    @pytest.mark.parametrize("status", ["processing", "shipped", "completed"])
    def test_cannot_cancel_non_pending(self, db, placed_order, service, status):
        db.get(Order, placed_order).status = status
        db.commit()
        
        assert service.cancel_order_as_user(placed_order, 7) is False
        assert db.get(Order, placed_order).status == status
    
    def test_cannot_cancel_someone_elses_order(self, db, placed_order, service):
        assert service.cancel_order_as_user(placed_order, 2) is False
        assert db.get(Order, placed_order).status == "pending"
    
    def test_cancel_restores_stock(self, db, placed_order, service):
        service.cancel_order_as_user(placed_order, 7)
        
        assert stock(db, 1) == 10
        assert stock(db, 2) == 1
        restocks = db.scalars(select(InventoryLog).where(InventoryLog.event_type == "restock")).all()
        assert sorted((r.product_id, r.quantity) for r in restocks) == [(1, 2), (2, 1)]
    
    def test_cancel_without_restock(self, db, users, products):
        service = OrderService(db, restock_on_cancel=False)
        order_id = service.create_order(7, [line(1, 2, "3.50")], Decimal("7.00"))
        
        assert service.cancel_order_as_user(order_id, 7) is True
        assert stock(db, 1) == 8
    
    def test_cancel_records_history(self, db, placed_order, service):
        service.cancel_order_as_user(placed_order, 7)
        
        history = service.get_status_history(placed_order)
        assert [(h.status, h.user_id) for h in history] == [("cancelled", 7)]
        assert history[0].notes == "Status changed from pending to cancelled"


class TestManagerTransitions:
    def test_forward_path_then_terminal(self, db, placed_order, service):
        for status in ("processing", "shipped", "completed"):
            assert service.update_order_status_as_manager(placed_order, status, changed_by=1) is True
            assert db.get(Order, placed_order).status == status
        
        assert service.update_order_status_as_manager(placed_order, "pending") is False
        assert db.get(Order, placed_order).status == "completed"
    
    @pytest.mark.parametrize("terminal", ["completed", "cancelled"])
    @pytest.mark.parametrize("target", ["pending", "processing", "shipped", "completed", "cancelled"])
    def test_terminal_states_are_final(self, db, placed_order, service, terminal, target):
        assert service.update_order_status_as_manager(placed_order, terminal) is True
        
        assert service.update_order_status_as_manager(placed_order, target) is False
        assert service.cancel_order_as_user(placed_order, 7) is False
        assert db.get(Order, placed_order).status == terminal
    
    @pytest.mark.parametrize("status", ["processing", "shipped"])
    def test_manager_can_cancel_in_flight_order(self, db, placed_order, service, status):
        service.update_order_status_as_manager(placed_order, status)
        
        assert service.update_order_status_as_manager(placed_order, "cancelled") is True
        assert stock(db, 1) == 10
    
    def test_invalid_status_rejected(self, db, placed_order, service):
        assert service.update_order_status_as_manager(placed_order, "delivered") is False
        assert db.get(Order, placed_order).status == "pending"
    
    def test_same_status_is_refused(self, placed_order, service):
        assert service.update_order_status_as_manager(placed_order, "pending") is False
    
    def test_missing_order(self, users, service):
        assert service.update_order_status_as_manager(404, "processing") is False
    
    def test_history_follows_transitions(self, db, placed_order, service):
        service.update_order_status_as_manager(placed_order, "processing", changed_by=1)
        service.update_order_status_as_manager(placed_order, "shipped", changed_by=1)
        
        entries = db.scalars(
            select(OrderStatusHistory).where(OrderStatusHistory.order_id == placed_order)
        ).all()
        assert [e.status for e in entries] == ["processing", "shipped"]
        assert entries[1].notes == "Status changed from processing to shipped"


class TestDashboard:
    def test_counts_and_recent(self, db, users, products, service):
        ids = [service.create_order(7, [line(1, 1, "3.50")], Decimal("3.50")) for _ in range(3)]
        service.update_order_status_as_manager(ids[0], "processing")
        service.cancel_order_as_user(ids[1], 7)
        
        stats = service.get_dashboard_stats(recent_limit=2)
        assert stats.total_orders == 3
        assert stats.by_status == {
            "pending": 1, "processing": 1, "shipped": 0, "completed": 0, "cancelled": 1
        }
        assert len(stats.recent_orders) == 2


def database_down(*args, **kwargs):
    raise OperationalError("INSERT INTO order_history", {}, Exception("disk I/O error"))


class TestFailuresRollBack:
    def test_unknown_user_leaves_nothing_behind(self, db, users, products, service):
        assert service.create_order(999, [line(1, 1, "3.50")], Decimal("3.50")) is None
        
        assert service.storage_failed
        assert "IntegrityError" in service.error_message
        assert count(db, Order) == 0
        assert count(db, OrderItem) == 0
        assert stock(db, 1) == 10
    
    def test_decrement_losing_a_race_rolls_back_order(self, db, users, products, service, monkeypatch):
        # Stock read says enough, but another transaction took it first
        monkeypatch.setattr(service.product_repository, "decrement_stock", lambda product_id, quantity: False)
        
        assert service.create_order(7, [line(1, 2, "3.50"), line(2, 1, "5.00")], Decimal("12.00")) is None
        
        assert not service.storage_failed
        assert count(db, Order) == 0
        assert count(db, OrderItem) == 0
        assert count(db, InventoryLog) == 0
        assert stock(db, 1) == 10
        assert stock(db, 2) == 1
    
    def test_manager_update_write_failure(self, db, placed_order, service, monkeypatch):
        monkeypatch.setattr(service.repository, "add_history", database_down)
        
        assert service.update_order_status_as_manager(placed_order, "processing") is False
        
        assert service.storage_failed
        assert db.scalar(select(Order.status).where(Order.order_id == placed_order)) == "pending"
    
    def test_user_cancel_write_failure(self, db, placed_order, service, monkeypatch):
        monkeypatch.setattr(service.repository, "add_history", database_down)
        
        assert service.cancel_order_as_user(placed_order, 7) is False
        
        assert service.storage_failed
        assert db.scalar(select(Order.status).where(Order.order_id == placed_order)) == "pending"
        assert stock(db, 1) == 8
        assert stock(db, 2) == 0
    
    def test_refusal_is_not_a_storage_failure(self, placed_order, service):
        service.update_order_status_as_manager(placed_order, "completed")
        
        assert service.update_order_status_as_manager(placed_order, "pending") is False
        assert not service.storage_failed
    
    def test_next_call_clears_failure(self, placed_order, service, monkeypatch):
        monkeypatch.setattr(service.repository, "get_with_items", database_down)
        assert service.get_order_details_as_manager(placed_order) is None
        assert service.storage_failed
        
        monkeypatch.undo()
        assert service.get_order_details_as_manager(placed_order) is not None
        assert not service.storage_failed


class TestOrderExists:
    def test_with_and_without_owner(self, placed_order, service):
        assert service.order_exists(placed_order) is True
        assert service.order_exists(placed_order, user_id=7) is True
        assert service.order_exists(placed_order, user_id=2) is False
        assert service.order_exists(404) is False
        assert not service.storage_failed
    
    def test_lookup_failure(self, placed_order, service, monkeypatch):
        monkeypatch.setattr(service.repository, "get_by_id", database_down)
        
        assert service.order_exists(placed_order) is False
        assert service.storage_failed
