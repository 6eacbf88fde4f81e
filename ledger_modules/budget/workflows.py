"""Budget Workflows.

State machine for the budget lifecycle.
"""

from ledger_kernel.domain.workflow import Transition, Workflow
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.budget.workflows")


BUDGET_WORKFLOW = Workflow(
    name="budget",
    description="Budget lifecycle",
    initial_state="draft",
    states=("draft", "active", "closed", "cancelled"),
    transitions=(
        Transition("draft", "active", action="activate"),
        Transition("active", "closed", action="close"),
        Transition("draft", "cancelled", action="cancel"),
        Transition("active", "cancelled", action="cancel"),
    ),
    terminal_states=("closed", "cancelled"),
)

# Statuses in which the budget header and its items may be edited
EDITABLE_BUDGET_STATUSES = frozenset({"draft", "active"})

logger.info("budget_workflow_registered", extra={
    "workflow_name": BUDGET_WORKFLOW.name,
    "state_count": len(BUDGET_WORKFLOW.states),
})
