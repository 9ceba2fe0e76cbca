"""PostgreSQL backend (psycopg2 driver, installed with the ``postgres`` extra)."""

from .base import DatabaseBase


class PostgreSQLDatabase(DatabaseBase):
    @property
    def backend_name(self) -> str:
        return "postgresql"

    def get_connection_string(self) -> str:
        pg = self.config.get("connection", {}).get("postgres", {})
        user = pg.get("user", "postgres")
        password = pg.get("password", "")
        host = pg.get("host", "localhost")
        port = pg.get("port", 5432)
        database = pg.get("database", "onemin_proxy")
        return f"postgresql://{user}:{password}@{host}:{port}/{database}"
