from itsm.db import filters as _filters  # noqa: F401  (register soft-delete filter)
