"""
Stored procedure calls with output parameters.

    total = OutParameter(int)
    with StoredProcedure('call order_total(?, ?)', args=[order_id, total]) as call:
        call.execute()
    print(total.get_int())

Output markers in the argument list are bound as NULL (OUT) or as their
input value (INOUT) and receive the value the driver reports once the call
has executed. Only the first outcome of the call is captured: a result set
(read with the cursor API) or an update count.
"""
import logging

from sqlhandle.cursor import ResultCursor
from sqlhandle.outcome import ProcedureOutcome
from sqlhandle.parameters import InOutParameter, OutParameter

__all__ = ['ProcedureCall', 'StoredProcedure', 'OutParameter', 'InOutParameter']

logger = logging.getLogger(__name__)


class ProcedureCall(ResultCursor):
    """Handle for ``CALL`` statements."""

    def _run(self, strategy, cursor, params, out_positions):
        outputs, consumed = strategy.execute_call(
            self._connection, cursor, self._sql, params, out_positions)

        for position in out_positions:
            self._args[position].receive(outputs.get(position))

        has_result_set = cursor.description is not None and not consumed
        if has_result_set:
            self._capture_columns(strategy, cursor)
            update_count = -1
        else:
            self._clear_results()
            update_count = cursor.rowcount
        logger.debug(f'Procedure call returned {"a result set" if has_result_set else f"update count {update_count}"}')
        return ProcedureOutcome(has_result_set, update_count, self._columns)

    @property
    def has_result_set(self) -> bool:
        """Whether the first outcome of the call is a result set."""
        return isinstance(self.outcome, ProcedureOutcome) and self.outcome.has_result_set

    @property
    def update_count(self) -> int:
        """Rows reported changed by the call; -1 for a result set or before executing."""
        if isinstance(self.outcome, ProcedureOutcome):
            return self.outcome.update_count
        return -1


StoredProcedure = ProcedureCall
