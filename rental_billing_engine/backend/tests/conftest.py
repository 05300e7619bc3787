# backend/tests/conftest.py
from __future__ import annotations

import os
import tempfile

# Must run before anything imports app.config / app.db.
_TMP = tempfile.mkdtemp(prefix="rental_billing_tests_")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TMP, "test.db")
os.environ["APP_ENV"] = "test"
os.environ["AUTH_MODE"] = "dev"

from app.db import init_db  # noqa: E402

init_db()
