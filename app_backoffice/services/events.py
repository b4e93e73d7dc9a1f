# ==============================================================================
# AVISOS DE CAMBIO ENTRE VISTAS
# ==============================================================================
# Cuando una colección cambia se publica su nombre; los observadores vuelven a
# leer la colección completa. No hay contrato de cambios incrementales.
# ==============================================================================

from typing import Callable, List

# Tema publicado al iniciar/cerrar sesión
SESSION_TOPIC = 'session'


class ChangeBroadcaster:
    """
    Publicación simple de cambios.

    Uso:
        broadcaster.subscribe(lambda topic: recargar(topic))
        broadcaster.publish('orders')
    """

    def __init__(self):
        self._subscribers: List[Callable[[str], None]] = []

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """
        Registra un observador.

        Returns:
            Función que cancela la suscripción
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, topic: str) -> None:
        """Notifica a todos los observadores. Un observador que falla no corta al resto."""
        for callback in list(self._subscribers):
            try:
                callback(topic)
            except Exception as e:
                print(f"[EVENTOS ERROR] Observador falló con '{topic}': {type(e).__name__}: {e}")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
