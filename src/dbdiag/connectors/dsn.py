from typing import Mapping, Optional
from sqlalchemy.engine import URL


def build_url(
    drivername: str,
    host: str,
    port: Optional[int],
    user: str,
    secret: str,
    database: str,
    trust_params: Optional[Mapping[str, str]] = None,
) -> URL:
    """
    Pure DSN construction shared by the postgres, mysql and sqlserver backends.
    Trust parameters land in the URL query; None values are dropped.
    """
    query = {k: v for k, v in (trust_params or {}).items() if v is not None}
    return URL.create(
        drivername,
        username=user or None,
        password=secret or None,
        host=host or None,
        port=port,
        database=database or None,
        query=query,
    )
