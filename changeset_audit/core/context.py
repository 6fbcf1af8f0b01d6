# changeset_audit/core/context.py

import contextvars

changeset_id_ctx = contextvars.ContextVar("changeset_id", default=None)
actor_id_ctx = contextvars.ContextVar("actor_id", default=None)
