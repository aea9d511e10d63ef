"""Data access managers for the Tavern API.

Each module provides async functions that encapsulate CRUD operations
and business logic.  Managers accept ``AsyncSession`` as a parameter,
run their writes inside ``transaction()``, and raise domain exceptions
from ``tavern.api.errors``, never HTTP exceptions -- that translation is
the job of the registered error handlers.
"""
