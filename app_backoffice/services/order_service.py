# ==============================================================================
# SERVICIO DE PEDIDOS
# ==============================================================================
# Centraliza toda la lógica de negocio relacionada con pedidos:
#
#   create_order      → checkout con varias líneas
#   quick_scan_order  → pedido de 1 unidad a partir de un código escaneado
#   delete_order      → solo el dueño o un admin
#
# Al crear un pedido:
#   1. Se valida cada línea y se toma una copia del producto
#   2. total = Σ precio × cantidad ; hasWinEligibleProducts = OR(winEligible)
#   3. Se guarda el pedido (marcado con el dueño)
#   4. Se descuenta el stock de cada producto (recortado en 0);
#      si falla, se borra el pedido y se restauran los productos
#   5. Se crea la notificación "Order Created"
# ==============================================================================

import random
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from app_backoffice.config import COLLECTION_ORDERS, COLLECTION_PRODUCTS, QUICK_ORDER_CUSTOMER_NAME
from app_backoffice.errors import BackofficeError, NotFound, PermissionDenied, ValidationError, error_result
from app_backoffice.models import Order, OrderItem, OrderStatus, Product
from app_backoffice.services.access_scope import AccessScope
from app_backoffice.services.notification_service import NotificationService
from app_backoffice.services.product_service import ProductService
from app_backoffice.services.session_service import SessionContext

# Una línea: (producto o id de producto, cantidad) o {'id': ..., 'quantity': ...}
OrderLine = Union[Tuple[Any, int], Dict[str, Any]]

ORDER_STATUSES = frozenset(s.value for s in OrderStatus)


class OrderService:
    """
    Servicio para gestión de pedidos.

    Responsabilidades:
    - Crear pedidos (checkout y escaneo rápido)
    - Descontar stock al vender
    - Listado filtrado y borrado con control de propietario
    """

    def __init__(
        self,
        access_scope: AccessScope,
        product_service: ProductService,
        notification_service: NotificationService = None
    ):
        """
        Args:
            access_scope: Capa de acceso por propietario
            product_service: Servicio de productos (lectura y stock)
            notification_service: Servicio de notificaciones (opcional)
        """
        self.access_scope = access_scope
        self.product_service = product_service
        self.notification_service = notification_service

    # =========================================================================
    # IDENTIFICADORES
    # =========================================================================

    @staticmethod
    def generate_order_id() -> str:
        return uuid.uuid4().hex

    @staticmethod
    def generate_order_number() -> str:
        """Código visible ORD-NNN. NO es único."""
        return f"ORD-{random.randint(0, 999):03d}"

    # =========================================================================
    # LECTURA
    # =========================================================================

    async def get_all_orders(
        self,
        session: SessionContext,
        status: str = None,
        win_eligible: bool = None,
        search: str = None
    ) -> List[Dict[str, Any]]:
        """
        Pedidos visibles para la sesión, los más recientes primero.

        Args:
            session: Contexto de sesión
            status: Filtrar por estado
            win_eligible: Filtrar por pedidos con productos elegibles
            search: Texto en número de pedido o cliente
        """
        records = await self.access_scope.list_visible(session, COLLECTION_ORDERS)
        orders = [Order.from_dict(r) for r in records]

        if status:
            orders = [o for o in orders if o.status == status]
        if win_eligible is not None:
            orders = [o for o in orders if o.has_win_eligible_products == win_eligible]
        if search:
            needle = search.strip().lower()
            orders = [
                o for o in orders
                if needle in o.order_number.lower() or needle in o.customer_name.lower()
            ]

        orders.sort(key=lambda o: o.date, reverse=True)
        return [o.to_dict() for o in orders]

    async def get_order(self, session: SessionContext, order_id: str) -> Optional[Dict[str, Any]]:
        record = await self.access_scope.get_visible(session, COLLECTION_ORDERS, order_id)
        return Order.from_dict(record).to_dict() if record else None

    # =========================================================================
    # CREACIÓN DE PEDIDOS
    # =========================================================================

    @staticmethod
    def _split_line(line: OrderLine) -> Tuple[str, Any]:
        if isinstance(line, dict):
            product_ref = line.get('productId') or line.get('id')
            quantity = line.get('quantity')
        else:
            product_ref, quantity = line
        if isinstance(product_ref, dict):
            product_ref = product_ref.get('id')
        elif isinstance(product_ref, Product):
            product_ref = product_ref.id
        return product_ref, quantity

    async def _build_items(self, session: SessionContext, lines: Iterable[OrderLine]) -> List[OrderItem]:
        """
        Valida las líneas y toma una copia de cada producto.

        Raises:
            ValidationError: Sin líneas o cantidad no positiva
            NotFound: Producto inexistente o no visible
        """
        items = []
        for line in lines:
            product_id, quantity = self._split_line(line)
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise ValidationError('La cantidad debe ser un entero positivo')
            if not product_id:
                raise ValidationError('Línea de pedido sin producto')

            record = await self.product_service.get_product(session, product_id)
            if record is None:
                raise NotFound(f"Producto no encontrado: {product_id}")
            items.append(OrderItem.from_product(Product.from_dict(record), quantity))

        if not items:
            raise ValidationError('El pedido no tiene productos')
        return items

    async def _undo_order(self, order_id: str, previous_products: List[Dict[str, Any]]) -> None:
        """Borra un pedido a medio crear y devuelve los productos a su estado previo."""
        store = self.access_scope.record_store
        try:
            await store.delete(COLLECTION_ORDERS, order_id)
            if previous_products:
                await store.put_many(COLLECTION_PRODUCTS, previous_products)
        except BackofficeError as e:
            print(f"[ERROR] No se pudo deshacer el pedido {order_id}: {e.message}")
            return
        self.access_scope.notify(COLLECTION_ORDERS)
        self.access_scope.notify(COLLECTION_PRODUCTS)

    async def create_order(
        self,
        session: SessionContext,
        lines: Iterable[OrderLine],
        customer_name: str = ''
    ) -> Dict[str, Any]:
        """
        Crea un pedido y descuenta el stock.
        Esta es la ÚNICA función que crea pedidos - centralizada.

        Si falla el descuento de algún producto se borra el pedido y se
        restauran los productos ya descontados: un resultado ok=False
        nunca deja un pedido guardado.

        Args:
            session: Contexto de sesión (autenticada)
            lines: Líneas (producto, cantidad), en orden
            customer_name: Cliente ('Guest' si vacío)

        Returns:
            Dict con resultado:
            - ok: True/False
            - order: pedido guardado
            - error / code: si falló
        """
        try:
            if not session.is_authenticated:
                raise PermissionDenied('Debes iniciar sesión para crear pedidos')

            items = await self._build_items(session, lines)
            order = Order(
                id=self.generate_order_id(),
                order_number=self.generate_order_number(),
                customer_name=customer_name or '',
                items=items,
            )
            order.calculate_total()

            saved = await self.access_scope.save_owned(session, COLLECTION_ORDERS, order.to_dict())
        except BackofficeError as e:
            print(f"[ERROR] No se pudo crear el pedido: {e.message}")
            return error_result(e)

        previous_products = []
        try:
            for item in items:
                before = await self.access_scope.record_store.get(COLLECTION_PRODUCTS, item.id)
                await self.product_service.record_sale(session, item.id, item.quantity)
                if before is not None:
                    previous_products.append(before)
        except BackofficeError as e:
            print(f"[ERROR] Falló el descuento de stock del pedido {order.order_number}: {e.message}")
            await self._undo_order(order.id, previous_products)
            return error_result(e)

        if self.notification_service:
            notified = await self.notification_service.notify(
                session,
                'Order Created',
                f"Order {order.order_number} created for {order.customer_name}",
            )
            if not notified['ok']:
                print(f"[ERROR] Pedido {order.order_number} sin notificación: {notified['error']}")

        return {'ok': True, 'order': saved}

    async def quick_scan_order(self, session: SessionContext, code: str) -> Dict[str, Any]:
        """
        Crea un pedido de una unidad a partir de un código escaneado,
        sin pasar por el carrito.

        Rechaza códigos desconocidos y productos sin stock.
        """
        product = await self.product_service.find_by_code(session, code)
        if product is None:
            return error_result(NotFound(f"Producto no encontrado: {code}"))
        if Product.from_dict(product).stock <= 0:
            return error_result(ValidationError(f"{product['name']} está agotado"))

        return await self.create_order(session, [(product['id'], 1)], QUICK_ORDER_CUSTOMER_NAME)

    async def save_order(self, session: SessionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Guarda un pedido tal cual (importaciones, correcciones). No toca el
        stock; el total y hasWinEligibleProducts se recalculan de los ítems.
        """
        try:
            status = data.get('status', OrderStatus.PENDING.value)
            if status not in ORDER_STATUSES:
                raise ValidationError(f"Estado de pedido inválido: {status}")
            order = Order.from_dict({
                **data,
                'id': data.get('id') or self.generate_order_id(),
                'orderNumber': data.get('orderNumber') or self.generate_order_number(),
            })
            if order.items:
                order.calculate_total()
            saved = await self.access_scope.save_owned(session, COLLECTION_ORDERS, order.to_dict())
        except BackofficeError as e:
            return error_result(e)
        return {'ok': True, 'order': saved}

    # =========================================================================
    # BORRADO
    # =========================================================================

    async def delete_order(self, session: SessionContext, order_id: str) -> Dict[str, Any]:
        """
        Elimina un pedido. El stock NO se repone.

        Returns:
            {'ok': True} o {'ok': False, 'code': 'PermissionDenied', ...}
            si el pedido no es del usuario
        """
        try:
            await self.access_scope.delete_owned(session, COLLECTION_ORDERS, order_id)
        except BackofficeError as e:
            return error_result(e)
        return {'ok': True}
