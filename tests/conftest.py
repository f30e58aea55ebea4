from __future__ import annotations

import os

# taskcadence.config refuses to import without a database URL.
os.environ.setdefault("DATABASE_URL", "sqlite://")
