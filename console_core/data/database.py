import json
from datetime import datetime
from typing import Optional
import os

from dotenv import load_dotenv
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

load_dotenv()

class DatabaseConfig:
    def __init__(self, database_name: str = None, schema_name: str = None):
        self.host = os.getenv('SOURCE_CONSOLE_DB_HOST', 'localhost')
        self.port = int(os.getenv('SOURCE_CONSOLE_DB_PORT', '5432'))
        self.database = database_name or os.getenv('SOURCE_CONSOLE_DB_NAME', 'source_console')
        self.user = os.getenv('SOURCE_CONSOLE_DB_USER', 'postgres')
        self.password = os.getenv('SOURCE_CONSOLE_DB_PASSWORD', 'password')
        self.schema = schema_name or os.getenv('SOURCE_CONSOLE_DB_SCHEMA', 'public')
        self.min_pool_size = int(os.getenv('SOURCE_CONSOLE_DB_MIN_POOL_SIZE', '2'))
        self.max_pool_size = int(os.getenv('SOURCE_CONSOLE_DB_MAX_POOL_SIZE', '10'))

    def get_connection_string(self):
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"

    def qualify_table(self, table_name: str) -> str:
        """Return schema-qualified table name."""
        if self.schema and self.schema != 'public':
            return f'"{self.schema}".{table_name}'
        return table_name

class Database:
    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.pool: Optional[AsyncConnectionPool] = None

    async def connect(self):
        """Create database connection pool."""
        self.pool = AsyncConnectionPool(
            conninfo=self.config.get_connection_string(),
            min_size=self.config.min_pool_size,
            max_size=self.config.max_pool_size,
            open=False,
        )
        await self.pool.open()

    async def disconnect(self):
        """Close database connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None

    async def execute(self, query: str, *args) -> int:
        """Execute a query and return the number of affected rows."""
        async with self.pool.connection() as connection:
            async with connection.cursor() as cursor:
                await cursor.execute(query, args or None)
                return cursor.rowcount

    async def fetch(self, query: str, *args):
        """Execute a query and fetch all results."""
        async with self.pool.connection() as connection:
            async with connection.cursor(row_factory=dict_row) as cursor:
                await cursor.execute(query, args or None)
                return await cursor.fetchall()

    async def fetchrow(self, query: str, *args):
        """Execute a query and fetch one result."""
        async with self.pool.connection() as connection:
            async with connection.cursor(row_factory=dict_row) as cursor:
                await cursor.execute(query, args or None)
                return await cursor.fetchone()

    async def fetchval(self, query: str, *args):
        """Execute a query and fetch a single value."""
        async with self.pool.connection() as connection:
            async with connection.cursor() as cursor:
                await cursor.execute(query, args or None)
                row = await cursor.fetchone()
                return row[0] if row else None

class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for datetime objects."""
    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)
