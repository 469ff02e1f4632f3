import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ledger.db")
SQLITE_BUSY_TIMEOUT = float(os.getenv("SQLITE_BUSY_TIMEOUT", "30"))
SEED_CATALOG = os.getenv("SEED_CATALOG", "1") == "1"

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# Coins granted to an account the first time its username authenticates.
STARTING_BALANCE = int(os.getenv("STARTING_BALANCE", "1000"))

# Empty disables ledger event publishing.
RABBITMQ_URL = os.getenv("RABBITMQ_URL", "")

# 0 means requests run without a deadline.
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "0"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
