"""Test environment: cheap bcrypt and a fixed JWT secret, set before app settings load."""

import os

os.environ.setdefault("APP_ENV", "dev")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-unit-tests-only")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DEBUG", "false")
