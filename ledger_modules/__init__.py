"""
Ledger modules -- orchestration around the movement ledger.

Each sub-package is thin glue: it validates a request, asks a pure engine
in ``ledger_engines`` for the numbers, and writes the result through the
kernel's Store and LedgerRecorder as one resumable saga.

    transfer        TransferCoordinator: two-leg warehouse transfers
    physical_count  PhysicalCountSession: count, reconcile, adjust
    receipts        ReceiptAllocator: customer payments over invoices
    receiving       ReceivingAllocator: goods receipts against PO lines

``wiring.build_ledger_services`` assembles all of them for one company.

Modules import from ``ledger_kernel`` and ``ledger_engines``, never the
reverse.
"""
