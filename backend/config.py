"""
Single place for runtime configuration.
Every value can be overridden from the environment; defaults are for local dev.
"""

import os

# Change JWT_SECRET in production; tokens signed with the default are forgeable by anyone reading this file.
JWT_SECRET = os.environ.get("JWT_SECRET", "change-me-in-production-use-env")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
TOKEN_EXPIRE_DAYS = int(os.environ.get("TOKEN_EXPIRE_DAYS", "7"))

# Lower rounds = faster login; 10 is still strong and ~instant
BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "10"))

# Admin account provisioned at startup
ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin123")

TOKEN_COOKIE_NAME = os.environ.get("TOKEN_COOKIE_NAME", "token")
COOKIE_SECURE = os.environ.get("COOKIE_SECURE", "false").lower() in ("1", "true", "yes")

CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if o.strip()
]

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
