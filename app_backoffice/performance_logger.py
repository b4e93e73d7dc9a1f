# ==============================================================================
# PROFILING DEL ALMACÉN DE REGISTROS
# ==============================================================================
# Cronometra cada operación del RecordStore (get_all, put, put_many, ...)
# y lleva la cuenta por colección. Las operaciones lentas se anotan en
# <DATA_DIR>/logs/slow_functions.log; al cerrar el contenedor se añade un
# resumen con todas las operaciones medidas.
#
# ACTIVAR/DESACTIVAR: variable de entorno BACKOFFICE_PROFILING
# ==============================================================================

import inspect
import os
import threading
import time
from datetime import datetime
from functools import wraps

from app_backoffice import config

ENABLE_PROFILING = config.ENABLE_PROFILING

# Umbrales (ms)
THRESHOLD_WARNING = 150
THRESHOLD_CRITICAL = 500

LOGS_DIR = os.environ.get('BACKOFFICE_LOGS_DIR') or os.path.join(config.DATA_DIR, 'logs')
SLOW_FUNCTIONS_LOG = os.path.join(LOGS_DIR, 'slow_functions.log')

# {operación: {calls, errors, total_ms, max_ms, collections: {colección: llamadas}}}
_operation_stats = {}
_stats_lock = threading.Lock()
_log_lock = threading.Lock()


def _new_entry():
    return {'calls': 0, 'errors': 0, 'total_ms': 0.0, 'max_ms': 0.0, 'collections': {}}


def _append_to_log(content):
    """Añade texto al log de operaciones lentas."""
    try:
        with _log_lock:
            os.makedirs(os.path.dirname(SLOW_FUNCTIONS_LOG), exist_ok=True)
            with open(SLOW_FUNCTIONS_LOG, 'a', encoding='utf-8') as f:
                f.write(content)
    except OSError as e:
        # Nunca rompe la operación medida
        print(f"[PROFILING ERROR] No se pudo escribir {SLOW_FUNCTIONS_LOG}: {e}")


def _collection_of(args):
    """En los métodos del almacén la colección es el primer argumento tras self."""
    if len(args) > 1 and isinstance(args[1], str):
        return args[1]
    return None


def _record(operation, collection, elapsed_ms, failed):
    with _stats_lock:
        entry = _operation_stats.setdefault(operation, _new_entry())
        entry['calls'] += 1
        entry['total_ms'] += elapsed_ms
        entry['max_ms'] = max(entry['max_ms'], elapsed_ms)
        if failed:
            entry['errors'] += 1
        if collection:
            entry['collections'][collection] = entry['collections'].get(collection, 0) + 1

    if elapsed_ms >= THRESHOLD_WARNING:
        severity = 'CRÍTICO' if elapsed_ms >= THRESHOLD_CRITICAL else 'LENTO'
        stamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        _append_to_log(
            f"[{severity}] {stamp} {operation}"
            f"{f' ({collection})' if collection else ''}: {elapsed_ms:.0f} ms\n"
        )


def profile_function(func=None, name=None):
    """
    Decorador que mide una operación del almacén.

    Acepta funciones normales y corrutinas. Las excepciones se cuentan como
    error y se propagan sin tocar.

    Uso:
        @profile_function(name="RecordStore.put")
        async def put(self, collection, record):
            ...
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn

        operation = name or fn.__qualname__

        if inspect.iscoroutinefunction(fn):
            @wraps(fn)
            async def async_wrapper(*args, **kwargs):
                start = time.perf_counter()
                failed = True
                try:
                    result = await fn(*args, **kwargs)
                    failed = False
                    return result
                finally:
                    _record(operation, _collection_of(args),
                            (time.perf_counter() - start) * 1000, failed)
            return async_wrapper

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            failed = True
            try:
                result = fn(*args, **kwargs)
                failed = False
                return result
            finally:
                _record(operation, _collection_of(args),
                        (time.perf_counter() - start) * 1000, failed)
        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


def get_operation_stats():
    """
    Estadísticas de las operaciones medidas.

    Returns:
        dict: {operación: {calls, errors, avg_ms, max_ms, collections}}
    """
    with _stats_lock:
        return {
            operation: {
                'calls': entry['calls'],
                'errors': entry['errors'],
                'avg_ms': round(entry['total_ms'] / entry['calls'], 2) if entry['calls'] else 0,
                'max_ms': round(entry['max_ms'], 2),
                'collections': dict(entry['collections']),
            }
            for operation, entry in _operation_stats.items()
        }


def write_stats_report():
    """Añade al log un resumen de todas las operaciones (la más lenta primero)."""
    stats = get_operation_stats()
    if not stats:
        return

    lines = [f"\n=== RESUMEN {datetime.now().strftime('%Y-%m-%d %H:%M:%S')} ==="]
    for operation, data in sorted(stats.items(), key=lambda x: x[1]['avg_ms'], reverse=True):
        per_collection = ', '.join(f"{c}={n}" for c, n in sorted(data['collections'].items()))
        lines.append(
            f"{operation}: {data['calls']} llamadas, {data['errors']} errores, "
            f"media {data['avg_ms']:.1f} ms, máx {data['max_ms']:.1f} ms"
            f"{f' [{per_collection}]' if per_collection else ''}"
        )
    _append_to_log('\n'.join(lines) + '\n')


def reset_stats():
    with _stats_lock:
        _operation_stats.clear()


__all__ = [
    'ENABLE_PROFILING',
    'profile_function',
    'get_operation_stats',
    'write_stats_report',
    'reset_stats',
]
