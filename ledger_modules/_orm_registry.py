"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table before ``create_all`` runs.  ``create_tables()`` in the
kernel calls ``import_all_orm_models()`` first.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``ledger_modules``
packages and from the kernel (allowed: modules -> kernel).
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``ledger_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    # Kernel tables first (warehouses, ledger, sequence counters)
    import ledger_kernel.models  # noqa: F401
    import ledger_kernel.services.sequence_service  # noqa: F401
    # fmt: off
    import ledger_modules.physical_count.orm  # noqa: F401
    import ledger_modules.receipts.orm  # noqa: F401
    import ledger_modules.receiving.orm  # noqa: F401
    # fmt: on
