"""
Tests de órdenes: creación con descuento de inventario, items, estados y pagos.
"""
import pytest
from sqlmodel import select

from pos_api.errors import (
    DishNotFound,
    DishUnavailable,
    EmptyOrder,
    InsufficientStock,
    InvalidItem,
    InvalidPaymentMethod,
    InvalidStatus,
    MesaInactive,
    NoInventoryRecord,
    NoOpenCaja,
    OrderClosed,
    OrderItemNotFound,
    OrderNotFound,
    UserDeactivated,
    ValidationError,
)
from pos_api.models import DetalleOrden, Mesa, Orden, Pago, Producto, TransaccionCaja
from pos_api.schemas import OrderCreateIn, OrderItemIn, OrderItemsIn, OrderStatusIn, PaymentIn
from pos_api.services import orders as orders_service


def _order(items, **kwargs):
    return OrderCreateIn(
        items=[OrderItemIn(platillo_id=pid, cantidad=qty) for pid, qty in items],
        **kwargs,
    )


@pytest.fixture
def tacos(make_product, make_dish):
    tortilla = make_product("Tortilla", 100)
    carne = make_product("Carne", 10, unidad="kg")
    dish = make_dish("Tacos", 50.0, recipe=[(tortilla, 3), (carne, 0.25)])
    return dish, tortilla, carne


class TestAggregateItems:

    def test_duplicate_dishes_are_summed(self):
        items = [OrderItemIn(platillo_id=10, cantidad=1), OrderItemIn(platillo_id=10, cantidad=2)]
        assert orders_service.aggregate_items(items) == {10: 3}

    def test_keeps_first_appearance_order(self):
        items = [
            OrderItemIn(platillo_id=7, cantidad=1),
            OrderItemIn(platillo_id=3, cantidad=1),
            OrderItemIn(platillo_id=7, cantidad=1),
        ]
        assert list(orders_service.aggregate_items(items)) == [7, 3]

    @pytest.mark.parametrize("items", [None, []])
    def test_empty_order_rejected(self, items):
        with pytest.raises(EmptyOrder):
            orders_service.aggregate_items(items)

    @pytest.mark.parametrize("platillo_id,cantidad", [(0, 1), (-4, 1), (1, 0), (1, -2), (1, 1.5)])
    def test_invalid_lines_rejected(self, platillo_id, cantidad):
        with pytest.raises(InvalidItem):
            orders_service.aggregate_items([OrderItemIn(platillo_id=platillo_id, cantidad=cantidad)])


class TestCreateOrder:

    def test_creates_order_and_deducts_inventory(self, db_session, open_caja, mesa, mesero, tacos, stock_of):
        dish, tortilla, carne = tacos

        order = orders_service.create_order(
            db_session, _order([(dish.id, 2)], mesa_id=mesa.id, mesero_id=mesero.id)
        )

        assert order["estado"] == "Pendiente"
        assert order["total"] == 100.0
        assert order["saldoPendiente"] == 100.0
        assert order["mesaNumero"] == "1"
        assert order["meseroNombre"] == "Mario Mesero"
        assert len(order["items"]) == 1
        assert order["items"][0]["precioUnit"] == 50.0
        assert stock_of(tortilla.id) == 94
        assert stock_of(carne.id) == 9.5

    def test_duplicate_lines_become_one_detail(self, db_session, open_caja, tacos, stock_of):
        dish, tortilla, _ = tacos

        order = orders_service.create_order(db_session, _order([(dish.id, 1), (dish.id, 2)]))

        assert len(order["items"]) == 1
        assert order["items"][0]["cantidad"] == 3
        assert order["items"][0]["subtotal"] == 150.0
        assert stock_of(tortilla.id) == 91

    def test_total_is_sum_of_rounded_lines(self, db_session, open_caja, make_product, make_dish):
        pan = make_product("Pan", 50)
        a = make_dish("Molletes", 12.345, recipe=[(pan, 1)])
        b = make_dish("Chilaquiles", 7.1, recipe=[(pan, 1)])

        order = orders_service.create_order(db_session, _order([(a.id, 3), (b.id, 1)]))

        prices = {i["platilloId"]: i for i in order["items"]}
        assert prices[a.id]["precioUnit"] == 12.35
        assert prices[a.id]["subtotal"] == 37.05
        assert order["total"] == round(37.05 + 7.1, 2)
        assert order["total"] == round(sum(i["subtotal"] for i in order["items"]), 2)

    def test_shared_ingredient_consumption_is_summed(self, db_session, open_caja, make_product, make_dish, stock_of):
        queso = make_product("Queso", 5)
        quesadilla = make_dish("Quesadilla", 30, recipe=[(queso, 2)])
        sope = make_dish("Sope", 25, recipe=[(queso, 1)])

        orders_service.create_order(db_session, _order([(quesadilla.id, 2), (sope.id, 1)]))

        assert stock_of(queso.id) == 0

    def test_insufficient_stock_leaves_no_rows(self, db_session, open_caja, mesa, make_product, make_dish, stock_of):
        tortilla = make_product("Tortilla", 4)
        dish = make_dish("Enchiladas", 80, recipe=[(tortilla, 5)])

        with pytest.raises(InsufficientStock) as exc:
            orders_service.create_order(db_session, _order([(dish.id, 1)], mesa_id=mesa.id))

        assert "No hay suficiente inventario para Tortilla" in exc.value.message
        assert db_session.exec(select(Orden)).all() == []
        assert db_session.exec(select(DetalleOrden)).all() == []
        assert stock_of(tortilla.id) == 4
        assert db_session.get(Mesa, mesa.id).activa is True

    def test_shortage_on_second_dish_leaves_first_untouched(
        self, db_session, open_caja, make_product, make_dish, stock_of
    ):
        arroz = make_product("Arroz", 10)
        frijol = make_product("Frijol", 1)
        a = make_dish("Arroz rojo", 20, recipe=[(arroz, 1)])
        b = make_dish("Frijoles charros", 25, recipe=[(frijol, 2)])

        with pytest.raises(InsufficientStock):
            orders_service.create_order(db_session, _order([(a.id, 1), (b.id, 1)]))

        assert stock_of(arroz.id) == 10
        assert db_session.exec(select(Orden)).all() == []

    def test_missing_inventory_record(self, db_session, open_caja, make_dish):
        sal = Producto(nombre="Sal")
        db_session.add(sal)
        db_session.commit()
        dish = make_dish("Caldo", 40, recipe=[(sal, 0.01)])

        with pytest.raises(NoInventoryRecord) as exc:
            orders_service.create_order(db_session, _order([(dish.id, 1)]))
        assert "Sal" in exc.value.message

    def test_unknown_dish(self, db_session, open_caja):
        with pytest.raises(DishNotFound):
            orders_service.create_order(db_session, _order([(999, 1)]))

    def test_unavailable_dish(self, db_session, open_caja, make_dish):
        dish = make_dish("Pozole", 90, disponible=False)
        with pytest.raises(DishUnavailable):
            orders_service.create_order(db_session, _order([(dish.id, 1)]))

    def test_requires_open_caja(self, db_session, tacos):
        dish, _, _ = tacos
        with pytest.raises(NoOpenCaja):
            orders_service.create_order(db_session, _order([(dish.id, 1)]))

    def test_rejects_occupied_mesa(self, db_session, open_caja, mesa, tacos):
        dish, _, _ = tacos
        orders_service.create_order(db_session, _order([(dish.id, 1)], mesa_id=mesa.id))

        assert db_session.get(Mesa, mesa.id).activa is False
        with pytest.raises(MesaInactive):
            orders_service.create_order(db_session, _order([(dish.id, 1)], mesa_id=mesa.id))

    def test_rejects_inactive_mesero(self, db_session, open_caja, mesero, tacos):
        dish, _, _ = tacos
        mesero.activo = False
        db_session.add(mesero)
        db_session.commit()

        with pytest.raises(UserDeactivated):
            orders_service.create_order(db_session, _order([(dish.id, 1)], mesero_id=mesero.id))

    def test_invalid_status(self, db_session, open_caja, tacos):
        dish, _, _ = tacos
        with pytest.raises(InvalidStatus):
            orders_service.create_order(db_session, _order([(dish.id, 1)], estado="Servida"))

    def test_status_is_case_insensitive(self, db_session, open_caja, tacos):
        dish, _, _ = tacos
        order = orders_service.create_order(db_session, _order([(dish.id, 1)], estado="confirmada"))
        assert order["estado"] == "Confirmada"


class TestOrderItems:

    def test_add_items_raises_total_and_consumes_stock(self, db_session, open_caja, tacos, stock_of):
        dish, tortilla, _ = tacos
        order = orders_service.create_order(db_session, _order([(dish.id, 1)]))

        updated = orders_service.add_items(
            db_session, order["id"], OrderItemsIn(items=[OrderItemIn(platillo_id=dish.id, cantidad=2)])
        )

        assert updated["total"] == 150.0
        assert len(updated["items"]) == 2
        assert stock_of(tortilla.id) == 91

    def test_remove_item_restores_stock(self, db_session, open_caja, tacos, stock_of):
        dish, tortilla, carne = tacos
        order = orders_service.create_order(db_session, _order([(dish.id, 2)]))
        detail_id = order["items"][0]["id"]

        updated = orders_service.remove_item(db_session, order["id"], detail_id)

        assert updated["items"] == []
        assert updated["total"] == 0.0
        assert stock_of(tortilla.id) == 100
        assert stock_of(carne.id) == 10

    def test_remove_item_from_other_order(self, db_session, open_caja, tacos):
        dish, _, _ = tacos
        first = orders_service.create_order(db_session, _order([(dish.id, 1)]))
        second = orders_service.create_order(db_session, _order([(dish.id, 1)]))

        with pytest.raises(OrderItemNotFound):
            orders_service.remove_item(db_session, second["id"], first["items"][0]["id"])

    def test_cannot_add_items_to_paid_order(self, db_session, open_caja, tacos):
        dish, _, _ = tacos
        order = orders_service.create_order(db_session, _order([(dish.id, 1)]))
        orders_service.update_order_status(db_session, order["id"], OrderStatusIn(estado="Pagada"))

        with pytest.raises(OrderClosed):
            orders_service.add_items(
                db_session, order["id"], OrderItemsIn(items=[OrderItemIn(platillo_id=dish.id, cantidad=1)])
            )


class TestStatusAndQueries:

    def test_update_status(self, db_session, open_caja, tacos):
        dish, _, _ = tacos
        order = orders_service.create_order(db_session, _order([(dish.id, 1)]))

        updated = orders_service.update_order_status(db_session, order["id"], OrderStatusIn(estado="en_proceso"))
        assert updated["estado"] == "En_Proceso"

    def test_update_status_validates_before_lookup(self, db_session):
        with pytest.raises(InvalidStatus):
            orders_service.update_order_status(db_session, 999, OrderStatusIn(estado="nope"))
        with pytest.raises(OrderNotFound):
            orders_service.update_order_status(db_session, 999, OrderStatusIn(estado="Anulada"))

    def test_list_orders_filter_and_order(self, db_session, open_caja, tacos):
        dish, _, _ = tacos
        first = orders_service.create_order(db_session, _order([(dish.id, 1)]))
        second = orders_service.create_order(db_session, _order([(dish.id, 1)]))
        orders_service.update_order_status(db_session, first["id"], OrderStatusIn(estado="Anulada"))

        all_orders = orders_service.list_orders(db_session)
        assert [o["id"] for o in all_orders] == [second["id"], first["id"]]
        assert [o["id"] for o in orders_service.list_orders(db_session, "PENDIENTE")] == [second["id"]]
        with pytest.raises(InvalidStatus):
            orders_service.list_orders(db_session, "Cerrada")

    def test_get_missing_order(self, db_session):
        with pytest.raises(OrderNotFound):
            orders_service.get_order(db_session, 42)


class TestPayments:

    def test_cash_payment_with_change_closes_order(self, db_session, open_caja, mesa, tacos):
        dish, _, _ = tacos
        order = orders_service.create_order(db_session, _order([(dish.id, 2)], mesa_id=mesa.id))

        paid = orders_service.register_payment(
            db_session, order["id"], PaymentIn(metodo_pago="efectivo", monto=150)
        )

        assert paid["estado"] == "Pagada"
        assert paid["totalPagado"] == 150.0
        assert paid["saldoPendiente"] == 0.0
        assert paid["pagos"][0]["metodoPago"] == "Efectivo"
        assert paid["pagos"][0]["cambio"] == 50.0
        assert db_session.get(Mesa, mesa.id).activa is True

        movements = db_session.exec(select(TransaccionCaja).order_by(TransaccionCaja.id)).all()
        assert [(m.tipo, m.monto) for m in movements] == [("Ingreso", 150.0), ("Egreso", 50.0)]

    def test_partial_card_payment(self, db_session, open_caja, tacos):
        dish, _, _ = tacos
        order = orders_service.create_order(db_session, _order([(dish.id, 2)]))

        paid = orders_service.register_payment(db_session, order["id"], PaymentIn(metodo_pago="Tarjeta", monto=40))

        assert paid["estado"] == "Pendiente"
        assert paid["saldoPendiente"] == 60.0
        assert paid["pagos"][0]["cambio"] is None
        # los pagos con tarjeta no mueven la caja
        assert db_session.exec(select(TransaccionCaja)).all() == []

    def test_rejects_payment_on_paid_order(self, db_session, open_caja, tacos):
        dish, _, _ = tacos
        order = orders_service.create_order(db_session, _order([(dish.id, 1)]))
        orders_service.register_payment(db_session, order["id"], PaymentIn(metodo_pago="Tarjeta", monto=50))

        with pytest.raises(OrderClosed):
            orders_service.register_payment(db_session, order["id"], PaymentIn(metodo_pago="Tarjeta", monto=1))
        assert len(db_session.exec(select(Pago)).all()) == 1

    @pytest.mark.parametrize(
        "payload,error",
        [
            (PaymentIn(metodo_pago="Cheque", monto=10), InvalidPaymentMethod),
            (PaymentIn(metodo_pago="Tarjeta", monto=0), ValidationError),
            (PaymentIn(metodo_pago="Efectivo", monto=10, cambio=-1), ValidationError),
        ],
    )
    def test_invalid_payments(self, db_session, payload, error):
        with pytest.raises(error):
            orders_service.register_payment(db_session, 1, payload)

    def test_payment_history(self, db_session, open_caja, mesero, tacos):
        dish, _, _ = tacos
        order = orders_service.create_order(db_session, _order([(dish.id, 1)], mesero_id=mesero.id))
        orders_service.register_payment(db_session, order["id"], PaymentIn(metodo_pago="Tarjeta", monto=20))
        orders_service.register_payment(db_session, order["id"], PaymentIn(metodo_pago="Tarjeta", monto=30))

        history = orders_service.list_payments(db_session)

        assert [p["monto"] for p in history] == [30.0, 20.0]
        assert history[0]["orderId"] == order["id"]
        assert history[0]["orderEstado"] == "Pagada"
        assert history[0]["meseroNombre"] == "Mario Mesero"
