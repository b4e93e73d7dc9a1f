# ==============================================================================
# REPOSITORIO BASE - Funcionalidad común para acceso a archivos JSON
# ==============================================================================

import json
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import threading


class BaseRepository(ABC):
    """
    Clase base abstracta para repositorios respaldados por un archivo JSON.
    Proporciona lectura/escritura con manejo de concurrencia básico mediante locks.

    Es la generación ANTERIOR de almacenamiento (plana, no transaccional).
    La generación actual es RecordStore (sqlite).
    """

    # Lock global para evitar escrituras concurrentes a archivos
    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        """
        Inicializa el repositorio con la ruta al archivo JSON.

        Args:
            file_path: Ruta absoluta al archivo JSON de datos
        """
        self.file_path = file_path
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        """Crea el archivo con datos vacíos si no existe."""
        if not os.path.exists(self.file_path):
            directory = os.path.dirname(self.file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """
        Retorna la estructura de datos vacía para este repositorio.

        Returns:
            Estructura vacía (dict, list, etc.) según el repositorio
        """
        pass

    def _read_raw(self) -> Any:
        """
        Lee los datos crudos del archivo JSON.

        Returns:
            Datos parseados del JSON (vacíos si el archivo falta o está corrupto)
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (json.JSONDecodeError, FileNotFoundError):
                # Si el archivo está corrupto o no existe, retornar datos vacíos
                return self._empty_data()

    def _write_raw(self, data: Any) -> None:
        """
        Escribe datos al archivo JSON.

        Args:
            data: Datos a serializar y escribir

        Raises:
            OSError: Si hay error de escritura
        """
        with self._file_lock:
            # Escribir a archivo temporal primero para atomicidad
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                # Reemplazar archivo original (operación atómica en la mayoría de sistemas)
                os.replace(temp_path, self.file_path)
            except Exception:
                # Limpiar archivo temporal si algo falla
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise


class KeyValueRepository(BaseRepository):
    """
    Almacén plano clave → string serializado (equivalente a localStorage).

    Formato del archivo:
    {
        "products": "[{...}, {...}]",
        "currentUser": "{\"id\": \"admin-id\", ...}",
        "migrationComplete": "true"
    }

    Los valores son SIEMPRE strings; quien escribe decide cómo serializar.
    """

    def _empty_data(self) -> Dict[str, str]:
        """Retorna diccionario vacío."""
        return {}

    def _load(self) -> Dict[str, str]:
        data = self._read_raw()
        return data if isinstance(data, dict) else {}

    def get_item(self, key: str) -> Optional[str]:
        """
        Obtiene el valor de una clave.

        Args:
            key: Clave a leer

        Returns:
            El string guardado o None si la clave no existe
        """
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        """
        Guarda un valor (siempre como string).

        Args:
            key: Clave
            value: Valor a guardar
        """
        with self._file_lock:
            data = self._load()
            data[key] = str(value)
            self._write_raw(data)

    def remove_item(self, key: str) -> None:
        """Elimina una clave. No falla si no existía."""
        with self._file_lock:
            data = self._load()
            if data.pop(key, None) is not None:
                self._write_raw(data)

    def keys(self):
        return list(self._load().keys())

    # =========================================================================
    # Helpers JSON
    # =========================================================================

    def get_json(self, key: str, default: Any = None) -> Any:
        """
        Lee y parsea una clave JSON.

        Raises:
            ValueError: Si el valor guardado no es JSON válido
        """
        raw = self.get_item(key)
        if raw is None:
            return default
        return json.loads(raw)

    def set_json(self, key: str, value: Any) -> None:
        """Serializa a JSON y guarda."""
        self.set_item(key, json.dumps(value, ensure_ascii=False))
