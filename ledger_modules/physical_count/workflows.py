"""
Physical Count Workflow.

State machine for a count session: setup -> counting -> completed, with
``discard`` taking an open count back to setup.
"""

from ledger_kernel.domain.workflow import Guard, Transition, Workflow
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.physical_count.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

WAREHOUSE_SELECTED = Guard(
    name="warehouse_selected",
    description="An active warehouse has been chosen for the count",
)

HAS_COUNT_LINES = Guard(
    name="has_count_lines",
    description="At least one line has been counted",
)


# -----------------------------------------------------------------------------
# Count Workflow
# -----------------------------------------------------------------------------

PHYSICAL_COUNT_WORKFLOW = Workflow(
    name="physical_count",
    description="Physical stock count and reconciliation",
    initial_state="setup",
    states=(
        "setup",
        "counting",
        "completed",
    ),
    transitions=(
        Transition("setup", "counting", action="start", guard=WAREHOUSE_SELECTED),
        Transition("counting", "counting", action="edit_lines"),
        Transition("counting", "setup", action="discard"),
        Transition(
            "counting", "completed", action="complete",
            guard=HAS_COUNT_LINES, posts_entry=True,
        ),
    ),
    terminal_states=("completed",),
)

logger.info(
    "physical_count_workflow_registered",
    extra={
        "workflow_name": PHYSICAL_COUNT_WORKFLOW.name,
        "state_count": len(PHYSICAL_COUNT_WORKFLOW.states),
        "transition_count": len(PHYSICAL_COUNT_WORKFLOW.transitions),
        "initial_state": PHYSICAL_COUNT_WORKFLOW.initial_state,
    },
)
