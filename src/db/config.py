import os

# Default to SQLite for local development if Postgres is unavailable
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "sqlite:///./total_return_index.db"
)

# Echo SQL statements (useful when debugging upsert behaviour)
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "0") == "1"
