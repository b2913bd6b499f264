"""
Single import surface for the storage layer.

Routes, the worker and scripts import from here; the implementations live in
core/db/<area>/.
"""
from core.db.base import get_conn, utcnow, utcnow_iso
from core.db.schema import ALL_TABLES, ensure_admin_from_env, init_db
from core.db.users import *  # noqa: F401,F403
from core.db.profiles import *  # noqa: F401,F403
from core.db.settings import *  # noqa: F401,F403
from core.db.jobs import *  # noqa: F401,F403
from core.db.applications import *  # noqa: F401,F403
from core.db.notifications import *  # noqa: F401,F403
from core.db.notifications import mark_read as mark_notification_read  # noqa: F401
from core.db.messaging import *  # noqa: F401,F403
from core.db.reports import *  # noqa: F401,F403
from core.db.verification import *  # noqa: F401,F403
