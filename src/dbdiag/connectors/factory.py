from typing import Dict, List, Type, Union
from ..domain.interfaces import DatabaseBackend
from ..domain.models import EngineKind
from ..exceptions import UnsupportedKindError
from .mongodb import MongoDBBackend
from .mysql import MySQLBackend
from .oracle import OracleBackend
from .postgres import PostgresBackend
from .sqlite import SQLiteBackend
from .sqlserver import SQLServerBackend

BACKENDS: Dict[EngineKind, Type] = {
    EngineKind.POSTGRES: PostgresBackend,
    EngineKind.MYSQL: MySQLBackend,
    EngineKind.SQLSERVER: SQLServerBackend,
    EngineKind.ORACLE: OracleBackend,
    EngineKind.SQLITE: SQLiteBackend,
    EngineKind.MONGODB: MongoDBBackend,
}


def supported_kinds() -> List[str]:
    return [kind.value for kind in BACKENDS]


def create_backend(kind: Union[str, EngineKind]) -> DatabaseBackend:
    """
    Factory function to create a fresh, unconnected backend for an engine kind.
    """
    try:
        engine_kind = EngineKind(kind)
    except ValueError:
        raise UnsupportedKindError(
            f"Unsupported database type: {kind} (expected one of: {', '.join(supported_kinds())})"
        ) from None
    return BACKENDS[engine_kind]()
