from .xattrs import LAUNCH_SERVICES_ATTR, XattrStore
from .walk import enumerate_files, task_source, count_files

__all__ = [
    "LAUNCH_SERVICES_ATTR",
    "XattrStore",
    "enumerate_files",
    "task_source",
    "count_files",
]
