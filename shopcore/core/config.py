import os

# Database configuration
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./shop.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Read paths
DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", "100"))
ORDER_SEARCH_LIMIT = 1000
