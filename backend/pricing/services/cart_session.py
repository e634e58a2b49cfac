from decimal import Decimal
from typing import Callable, List, Optional, Any

from pricing.core.exceptions import InvalidLineItem, SessionLocked
from pricing.models.pricing import CartSession, LineItem
from pricing.modules.taxes.aliquots import TaxAliquotResolver
from pricing.utils.money import to_decimal, ZERO
from pricing.utils.observability import observability_logger
from pricing.utils.validators import validate_line_item, validate_discount

SessionListener = Callable[[CartSession], None]


class CartSessionService:
    """
    Operaciones sobre una sesión de factura/carrito (POS, factura nueva,
    edición). Cada cambio incrementa session.version y notifica a los
    suscriptores para que recalculen totales.

    Las líneas se validan contra el resolver de alícuotas al entrar, así un
    código de IVA desconocido nunca llega al cálculo de totales.

    Una sesión enviada queda bloqueada: cualquier cambio lanza SessionLocked.
    """

    def __init__(self, session: Optional[CartSession] = None, resolver: Optional[TaxAliquotResolver] = None):
        self.session = session or CartSession()
        self.resolver = resolver
        self._listeners: List[SessionListener] = []

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def _ensure_open(self) -> None:
        if self.session.submitted:
            raise SessionLocked("La factura ya fue enviada y no admite cambios")

    def _touch(self) -> None:
        self.session.version += 1
        for listener in list(self._listeners):
            listener(self.session)

    def _index_of(self, product_id: int) -> int:
        for idx, item in enumerate(self.session.items):
            if item.product_id == product_id:
                return idx
        raise InvalidLineItem(
            "Producto no está en el carrito",
            details={"field": "product_id", "value": str(product_id), "product_id": product_id},
        )

    def find_item(self, product_id: int) -> Optional[LineItem]:
        for item in self.session.items:
            if item.product_id == product_id:
                return item
        return None

    # -----------------------
    # Líneas
    # -----------------------
    def add_item(self, item: LineItem) -> LineItem:
        """
        Agrega una línea. Si el producto ya está en el carrito suma la
        cantidad a la línea existente (como el POS).
        """
        self._ensure_open()
        validate_line_item(item, index=len(self.session.items), resolver=self.resolver)

        existing = self.find_item(item.product_id) if item.product_id is not None else None
        if existing is not None:
            idx = self._index_of(item.product_id)
            merged = existing.model_copy(update={"quantity": existing.quantity + item.quantity})
            self.session.items[idx] = merged
            result = merged
        else:
            self.session.items.append(item)
            result = item
        self._touch()
        return result

    def add_product(self, product_id: int, unit_price, quantity=1, **fields: Any) -> LineItem:
        return self.add_item(LineItem(product_id=product_id, unit_price=unit_price, quantity=quantity, **fields))

    def update_quantity(self, product_id: int, quantity) -> Optional[LineItem]:
        """Cantidad 0 quita la línea; cantidades negativas son inválidas."""
        self._ensure_open()
        qty = to_decimal(quantity)
        if qty == ZERO:
            self.remove_item(product_id)
            return None
        return self.update_item(product_id, quantity=qty)

    def update_item(self, product_id: int, **changes: Any) -> LineItem:
        """Cambia precio, cantidad, alícuota o exención de una línea."""
        self._ensure_open()
        idx = self._index_of(product_id)
        current = self.session.items[idx]
        updated = LineItem.model_validate({**current.model_dump(), **changes})
        validate_line_item(updated, index=idx, resolver=self.resolver)
        self.session.items[idx] = updated
        self._touch()
        return updated

    def remove_item(self, product_id: int) -> None:
        self._ensure_open()
        idx = self._index_of(product_id)
        del self.session.items[idx]
        self._touch()

    def clear(self) -> None:
        self._ensure_open()
        self.session.items = []
        self._touch()

    # -----------------------
    # Datos de la orden
    # -----------------------
    def set_discount(self, discount_percent) -> Decimal:
        self._ensure_open()
        self.session.discount_percent = validate_discount(discount_percent)
        self._touch()
        return self.session.discount_percent

    def set_payment_method(self, payment_method: str) -> None:
        self._ensure_open()
        self.session.payment_method = (payment_method or "").strip().lower()
        self._touch()

    def set_igtf_exempt(self, exempt: bool) -> None:
        self._ensure_open()
        self.session.igtf_exempt = bool(exempt)
        self._touch()

    def set_manual_exchange_rate(self, rate) -> None:
        self._ensure_open()
        self.session.manual_exchange_rate = to_decimal(rate) if rate not in (None, "") else None
        self._touch()

    def set_customer(self, customer_id: Optional[int]) -> None:
        self._ensure_open()
        self.session.customer_id = customer_id
        self._touch()

    def set_warehouse(self, warehouse_id: Optional[int]) -> None:
        self._ensure_open()
        self.session.warehouse_id = warehouse_id
        self._touch()

    def mark_submitted(self) -> CartSession:
        self._ensure_open()
        self.session.submitted = True
        observability_logger.log_business_event(
            "invoice_submitted",
            session_id=self.session.session_id,
            customer_id=self.session.customer_id,
            warehouse_id=self.session.warehouse_id,
            lines=len(self.session.items),
        )
        return self.session
