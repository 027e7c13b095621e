"""
Shared in-process stores used by the route modules.
"""

from core.records import GradeStore, Roster
from core.schemes import SchemeRegistry

scheme_registry = SchemeRegistry()
grade_store = GradeStore()
roster = Roster()


def active_scheme():
    """Scheme used for every resolution in a request; None means the default ladder."""
    return scheme_registry.get_default_scheme()
