"""
Ledger modules (``ledger_modules``).

Feature packages built on top of ``ledger_kernel``:

* ``budget``    -- budgets with line items and budget-vs-actual progress.
* ``reporting`` -- profit and loss, balance sheet, cash flow, trial
  balance and the finance dashboard.

Modules may import from the kernel; the kernel never imports from here.
"""
