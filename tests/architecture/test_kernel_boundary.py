"""
Kernel Boundary & Invariants Contract.

Tests that enforce the package layering:

1. ledger_kernel/** may NOT import ledger_config or ledger_modules.
   The kernel never depends upward.

2. ledger_modules/** may NOT import ledger_config; settings reach modules
   only through the config objects built by ledger_config.bridges.

3. Only TransactionLedger writes LedgerMovement rows and calls the
   registry's balance mutator.

4. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST -- they cannot break anything.
"""

import ast
from pathlib import Path

from ledger_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

ROOT = Path(__file__).resolve().parents[2]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _python_files(package: str) -> list[Path]:
    """Return all .py files under a top-level package."""
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    try:
        tree = ast.parse(filepath.read_text(), filename=str(filepath))
    except (SyntaxError, UnicodeDecodeError):
        return []

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Test: Kernel has no upward dependencies
# ---------------------------------------------------------------------------


class TestKernelNoUpwardDependencies:
    """ledger_kernel/** must never import ledger_config or ledger_modules."""

    def test_kernel_package_found(self):
        assert _python_files("ledger_kernel")

    def test_kernel_does_not_import_forbidden_packages(self):
        violations = _violations("ledger_kernel", FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, (
            "Kernel boundary violation -- ledger_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )


class TestModulesDoNotReadSettings:

    def test_modules_do_not_import_config(self):
        violations = _violations("ledger_modules", ("ledger_config",))
        assert not violations, (
            "Modules receive configuration objects; they must not import "
            "ledger_config:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Posting authority
# ---------------------------------------------------------------------------


class TestPostingAuthority:
    """Balances and ledger movements are written by TransactionLedger only."""

    ALLOWED = {
        Path("ledger_kernel/services/transaction_ledger.py"),
        Path("ledger_kernel/services/account_registry.py"),
    }

    def _callers_of(self, name: str) -> set[Path]:
        """Files containing a call to `name`, as a function or attribute."""
        found = set()
        for package in ("ledger_kernel", "ledger_modules", "ledger_config", "scripts"):
            for filepath in _python_files(package):
                tree = ast.parse(filepath.read_text(), filename=str(filepath))
                for node in ast.walk(tree):
                    if not isinstance(node, ast.Call):
                        continue
                    func = node.func
                    called = func.id if isinstance(func, ast.Name) else getattr(func, "attr", None)
                    if called == name:
                        found.add(filepath.relative_to(ROOT))
        return found

    def test_only_ledger_adjusts_balances(self):
        callers = self._callers_of("_adjust_balance")
        assert callers <= self.ALLOWED, f"Unexpected balance writers: {callers - self.ALLOWED}"

    def test_only_ledger_creates_movements(self):
        callers = self._callers_of("LedgerMovement")
        assert callers <= {Path("ledger_kernel/services/transaction_ledger.py")}, callers


# ---------------------------------------------------------------------------
# Test: Invariants contract
# ---------------------------------------------------------------------------


class TestInvariantsContract:

    def test_invariants_declared(self):
        assert ALL_KERNEL_INVARIANTS
        assert len(ALL_KERNEL_INVARIANTS) == len(KernelInvariant)

    def test_core_invariants_present(self):
        for name in ("ZERO_SUM", "POST_ONCE", "APPEND_ONLY", "DERIVED_NORMAL_BALANCE"):
            assert KernelInvariant[name] in ALL_KERNEL_INVARIANTS
