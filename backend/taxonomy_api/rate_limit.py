"""Rate limiting configuration (kept separate so routers can import it)."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

# Tests disable the limiter through the environment before importing the app
_enabled = os.environ.get("TAXONOMY_NO_RATE_LIMIT", "").lower() != "true"

limiter = Limiter(key_func=get_remote_address, enabled=_enabled)

# Budgets for the endpoints that fan out into recursive traversal
TRAVERSAL_LIMIT = "120/minute"
STREAM_LIMIT = "30/minute"
MUTATION_LIMIT = "300/minute"
