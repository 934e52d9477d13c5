"""
MySQL connection management for the routine loader.

``mysql.connector`` is imported at module level — if it is not installed
this module will fail loudly on import with a clear ``ModuleNotFoundError``.
Install it with:  pip install mysql-connector-python

Usage:
    from stratum.discovery.mysql_client import MySqlDataLayer, connect

    # One-shot connection
    dl = connect(host="localhost", user="scott", password="tiger", database="app")
    dl.close()

    # Context manager (auto-closes)
    with MySqlDataLayer(host="...", user="...", password="...", database="...") as dl:
        dl.execute_rows("select 1")
"""

from __future__ import annotations

import logging
from typing import Any

import mysql.connector  # hard import, fails if mysql-connector-python is missing
from mysql.connector import errorcode
from mysql.connector.conversion import MySQLConverter

from stratum.configs.exceptions import DataLayerConnectionError, DataLayerError
from stratum.discovery.base import AbstractDataLayer

logger = logging.getLogger(__name__)

# OperationalError and these client errnos mean the connection itself is unusable.
# Other InterfaceErrors (e.g. an unread result) are statement failures.
_CONNECTION_ERRNOS = frozenset({
    errorcode.CR_CONNECTION_ERROR,
    errorcode.CR_CONN_HOST_ERROR,
    errorcode.CR_SERVER_GONE_ERROR,
    errorcode.CR_SERVER_LOST,
    errorcode.CR_SERVER_LOST_EXTENDED,
})


class MySqlDataLayer(AbstractDataLayer):
    """
    Data layer on top of a single autocommit ``mysql.connector`` connection.

    Args:
        host:     MySQL host name.
        port:     MySQL port.
        user:     MySQL user name.
        password: MySQL password.
        database: Schema the routines are loaded into.
        **kwargs: Additional keyword args forwarded to ``mysql.connector.connect()``.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 3306,
        user: str = "",
        password: str = "",
        database: str = "",
        **kwargs,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._database = database
        self._kwargs = kwargs
        self._conn = None
        self._converter = MySQLConverter()

    # ── AbstractDataLayer interface ──────────────────────────────────────

    def open(self) -> None:
        """
        Open the connection.  Does nothing if it is already open.

        Raises:
            DataLayerConnectionError: If the connection can't be opened.
        """
        if self._conn is not None:
            return
        try:
            self._conn = mysql.connector.connect(
                host=self._host,
                port=self._port,
                user=self._user,
                password=self._password,
                database=self._database,
                autocommit=True,
                **self._kwargs,
            )
        except mysql.connector.Error as e:
            raise DataLayerConnectionError(
                f"Failed to connect to MySQL ({self._user}@{self._host}:{self._port}/{self._database}): {e}"
            ) from e
        logger.debug("Connected to %s:%s/%s", self._host, self._port, self._database)

    def execute_none(self, sql: str) -> None:
        with self._cursor(sql, buffered=True) as cursor:
            cursor.execute(sql)
            # A call may produce result sets; a buffered cursor has read them already.

    def execute_rows(self, sql: str) -> list[dict[str, Any]]:
        with self._cursor(sql, dictionary=True) as cursor:
            cursor.execute(sql)
            return [_decode_row(row) for row in cursor.fetchall()]

    def execute_singleton0(self, sql: str) -> Any:
        rows = self.execute_rows(sql)
        if len(rows) > 1:
            raise DataLayerError(f"Expected at most one row, got {len(rows)}.", sql=sql)
        if not rows:
            return None
        return next(iter(rows[0].values()))

    def escape_string(self, value: str) -> str:
        escaped = self._converter.escape(value)
        if isinstance(escaped, (bytes, bytearray)):
            return escaped.decode("utf-8")
        return escaped

    def close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            except mysql.connector.Error:
                logger.debug("Ignoring error while closing the connection.", exc_info=True)
            self._conn = None

    # ── internals ────────────────────────────────────────────────────────

    def _cursor(self, sql: str, **kwargs) -> "_CursorScope":
        if self._conn is None:
            raise DataLayerConnectionError("MySqlDataLayer.open() must be called first.", sql=sql)
        return _CursorScope(self._conn, sql, kwargs)


class _CursorScope:
    """Opens a cursor, closes it on exit and translates driver errors."""

    def __init__(self, conn, sql: str, cursor_kwargs: dict) -> None:
        self._conn = conn
        self._sql = sql
        self._cursor_kwargs = cursor_kwargs
        self._cursor = None

    def __enter__(self):
        try:
            self._cursor = self._conn.cursor(**self._cursor_kwargs)
        except mysql.connector.Error as e:
            raise _translate(e, self._sql) from e
        return self._cursor

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self._cursor is not None:
            try:
                self._cursor.close()
            except mysql.connector.Error:
                logger.debug("Ignoring error while closing a cursor.", exc_info=True)
        if isinstance(exc_val, mysql.connector.Error):
            raise _translate(exc_val, self._sql) from exc_val
        return False


def _translate(error: Exception, sql: str) -> DataLayerError:
    if (
        isinstance(error, mysql.connector.errors.OperationalError)
        or getattr(error, "errno", None) in _CONNECTION_ERRNOS
    ):
        return DataLayerConnectionError(f"Lost connection to MySQL: {error}", sql=sql)
    return DataLayerError(f"MySQL error: {error}", sql=sql)


def _decode_row(row: dict[str, Any]) -> dict[str, Any]:
    """Decode ``bytes`` values (``describe`` returns some columns as bytes)."""
    return {
        key: value.decode("utf-8") if isinstance(value, (bytes, bytearray)) else value
        for key, value in row.items()
    }


def connect(
    host: str,
    user: str,
    password: str,
    database: str,
    port: int = 3306,
    **kwargs,
) -> MySqlDataLayer:
    """
    Open a new MySQL data layer.

    Args:
        host:     MySQL host name.
        user:     MySQL user name.
        password: MySQL password.
        database: Schema the routines are loaded into.
        port:     MySQL port.
        **kwargs: Additional keyword args forwarded to ``mysql.connector.connect()``.

    Returns:
        An open ``MySqlDataLayer``.

    Raises:
        DataLayerConnectionError: If the connection fails.
    """
    data_layer = MySqlDataLayer(
        host=host, port=port, user=user, password=password, database=database, **kwargs
    )
    data_layer.open()
    return data_layer
