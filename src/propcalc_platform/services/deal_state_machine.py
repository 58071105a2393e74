"""Deal state machine - status transitions and the wizard step cursor.

Only Finance step submissions change status, to COMPLETE or DRAFT, and they
overwrite any finance review state written by the external lender
process.

The step cursor has two modes. Loose mode (the default) moves the cursor
to the step after the one just completed without looking at earlier steps.
Strict mode locks a step until every earlier step is completed and derives
the cursor from the contiguous run of completed steps.
"""

from propcalc_platform.domain.enums import DealStatus, DealStep
from propcalc_platform.domain.errors import StepLocked


FIRST_STEP = DealStep.PD
LAST_STEP = DealStep.FINANCE


class DealStateMachine:
    """Computes the status and cursor that follow a step submission."""

    def __init__(self, strict_step_order: bool = False):
        self.strict_step_order = strict_step_order

    def status_after_step(
        self,
        current_status: DealStatus,
        step: DealStep,
        completed: bool,
    ) -> DealStatus:
        """Only the Finance step touches status: complete if done, else draft."""
        if step != LAST_STEP:
            return current_status
        return DealStatus.COMPLETE if completed else DealStatus.DRAFT

    def validate_submission(self, step: DealStep, completed_steps: dict[DealStep, bool]) -> None:
        """Raise StepLocked in strict mode when an earlier step is incomplete."""
        if not self.strict_step_order:
            return
        reachable = self.contiguous_cursor(completed_steps)
        if step > reachable:
            raise StepLocked(int(step), int(reachable))

    def cursor_after_step(
        self,
        step: DealStep,
        completed: bool,
        completed_steps: dict[DealStep, bool],
    ) -> int:
        """Return the new ``current_step`` after ``step`` was written.

        ``completed_steps`` must already reflect the submission.
        """
        if self.strict_step_order:
            return int(self.contiguous_cursor(completed_steps))
        if completed:
            return min(int(LAST_STEP), int(step) + 1)
        return int(step)

    @staticmethod
    def contiguous_cursor(completed_steps: dict[DealStep, bool]) -> DealStep:
        """``min(4, 1 + number of completed steps counted from step 1)``."""
        count = 0
        for step in DealStep:
            if not completed_steps.get(step):
                break
            count += 1
        return DealStep(min(int(LAST_STEP), int(FIRST_STEP) + count))
