# ==============================================================================
# SERVICIO DE NOTIFICACIONES
# ==============================================================================
# Avisos por usuario (p. ej. "Order Created"). Mismas reglas de visibilidad
# que productos y pedidos: propios + sin dueño; el admin ve todos.
# ==============================================================================

import asyncio
from typing import Any, Dict, List

from app_backoffice.config import COLLECTION_NOTIFICATIONS
from app_backoffice.errors import BackofficeError, NotFound, error_result
from app_backoffice.models import Notification
from app_backoffice.repositories.interfaces import IRecordStore
from app_backoffice.services.access_scope import AccessScope
from app_backoffice.services.session_service import SessionContext


class NotificationService:
    """Alta, lectura y borrado de notificaciones."""

    def __init__(self, access_scope: AccessScope, record_store: IRecordStore):
        self.access_scope = access_scope
        self.record_store = record_store
        self._id_lock = None
        self._id_lock_loop = None

    def _get_id_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._id_lock is None or self._id_lock_loop is not loop:
            self._id_lock = asyncio.Lock()
            self._id_lock_loop = loop
        return self._id_lock

    async def _next_id(self) -> int:
        """Siguiente id numérico (máximo de toda la colección + 1). Llamar con el lock tomado."""
        records = await self.record_store.get_all(COLLECTION_NOTIFICATIONS)
        ids = [Notification.from_dict(r).id for r in records]
        return max(ids, default=0) + 1

    async def get_all_notifications(self, session: SessionContext, unread_only: bool = False) -> List[Dict[str, Any]]:
        """Notificaciones visibles, las más nuevas primero."""
        records = await self.access_scope.list_visible(session, COLLECTION_NOTIFICATIONS)
        notifications = [Notification.from_dict(r) for r in records]
        if unread_only:
            notifications = [n for n in notifications if not n.read]
        notifications.sort(key=lambda n: n.id, reverse=True)
        return [n.to_dict() for n in notifications]

    async def unread_count(self, session: SessionContext) -> int:
        return len(await self.get_all_notifications(session, unread_only=True))

    async def save_notification(self, session: SessionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crea o actualiza una notificación. Sin id se le asigna uno nuevo.

        Returns:
            Dict {'ok': True, 'notification': {...}} o error
        """
        try:
            if data.get('id') in (None, ''):
                # Calcular el id y guardar sin que otra alta se intercale
                async with self._get_id_lock():
                    notification = Notification.from_dict({**data, 'id': await self._next_id()})
                    saved = await self.access_scope.save_owned(
                        session, COLLECTION_NOTIFICATIONS, notification.to_dict()
                    )
            else:
                notification = Notification.from_dict(data)
                saved = await self.access_scope.save_owned(
                    session, COLLECTION_NOTIFICATIONS, notification.to_dict()
                )
        except BackofficeError as e:
            return error_result(e)
        return {'ok': True, 'notification': saved}

    async def notify(self, session: SessionContext, title: str, message: str) -> Dict[str, Any]:
        """Crea una notificación nueva para el usuario de la sesión."""
        return await self.save_notification(session, {'title': title, 'message': message})

    async def mark_as_read(self, session: SessionContext, notification_id: int) -> Dict[str, Any]:
        try:
            record = await self.access_scope.get_visible(session, COLLECTION_NOTIFICATIONS, notification_id)
            if record is None:
                raise NotFound('Notificación no encontrada')
            notification = Notification.from_dict(record)
            notification.read = True
            saved = await self.access_scope.save_owned(
                session, COLLECTION_NOTIFICATIONS, notification.to_dict()
            )
        except BackofficeError as e:
            return error_result(e)
        return {'ok': True, 'notification': saved}

    async def mark_all_as_read(self, session: SessionContext) -> Dict[str, Any]:
        """Marca como leídas todas las notificaciones visibles (una transacción)."""
        try:
            records = await self.access_scope.list_visible(session, COLLECTION_NOTIFICATIONS)
            pending = []
            for record in records:
                notification = Notification.from_dict(record)
                if not notification.read:
                    notification.read = True
                    pending.append(notification.to_dict())
            if pending:
                await self.access_scope.save_many_owned(session, COLLECTION_NOTIFICATIONS, pending)
        except BackofficeError as e:
            return error_result(e)
        return {'ok': True, 'updated': len(pending)}

    async def delete_notification(self, session: SessionContext, notification_id: int) -> Dict[str, Any]:
        try:
            await self.access_scope.delete_owned(session, COLLECTION_NOTIFICATIONS, notification_id)
        except BackofficeError as e:
            return error_result(e)
        return {'ok': True}
