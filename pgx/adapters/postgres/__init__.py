"""PostgreSQL engine adapter.

Implements the EngineManager port with locally installed binaries:
- initdb for one-time cluster initialization
- pg_ctl for start and stop
- postmaster.pid plus psutil for liveness
"""

from pgx.adapters.postgres.engine_manager import PgCtlEngineManager

__all__ = ["PgCtlEngineManager"]
