"""
Rejection Ledger
Append-only cause breakdown for units rejected at a stage.

Completing a stage with rejected units does not demand ledger lines at that
moment; cause entry may follow later. Until the lines add up to the declared
rejected quantity the stage is reported as unaccounted.
"""
import logging

from utils.enums import ResponsiblePartyChoices
from . import reconciler
from .exceptions import EmptyReason, RejectionOverflow
from .models import RejectionLine

logger = logging.getLogger(__name__)


class RejectionLedger:

    def __init__(self, store):
        self.store = store

    def lines_for(self, stage_id):
        """Lines for a stage in insertion order; lazy and safe to iterate more than once"""
        return self.store.load_rejection_lines(stage_id)

    def logged_quantity(self, stage_id):
        return sum(line.quantity for line in self.lines_for(stage_id))

    def unaccounted_quantity(self, stage):
        return max(stage.quantity_rejected - self.logged_quantity(stage.pk), 0)

    def is_accounted(self, stage):
        return self.logged_quantity(stage.pk) == stage.quantity_rejected

    def _build_line(self, stage, reason, quantity, notes='', severity=None, action_taken=None,
                    responsible_party=None, reported_by=None):
        if not isinstance(reason, str) or not reason.strip():
            raise EmptyReason()
        reconciler.validate_rejection_quantity(quantity)

        line = RejectionLine(
            stage_id=stage.pk,
            reason=reason.strip(),
            quantity=quantity,
            notes=notes or '',
            responsible_party=responsible_party or (
                ResponsiblePartyChoices.VENDOR if stage.outsourced else ResponsiblePartyChoices.INTERNAL
            ),
        )
        if severity:
            line.severity = severity
        if action_taken:
            line.action_taken = action_taken
        if reported_by is not None and reported_by.is_authenticated:
            line.reported_by = reported_by
        return line

    def add_line(self, stage_id, reason, quantity, notes='', **attribution):
        """
        Append one line. Raises EmptyReason for a blank reason and
        RejectionOverflow when the running sum would pass the stage's
        rejected quantity.
        """
        return self.add_lines(stage_id, [dict(reason=reason, quantity=quantity, notes=notes, **attribution)])[0]

    def add_lines(self, stage_id, items):
        """Append several lines as one unit: all are written or none"""
        with self.store.locked(stage_id) as stage:
            lines = [self._build_line(stage, **item) for item in items]

            logged = sum(line.quantity for line in self.store.load_rejection_lines(stage_id))
            requested = sum(line.quantity for line in lines)
            if logged + requested > stage.quantity_rejected:
                logger.warning(
                    f'Rejection overflow on stage {stage_id}: logged {logged} + '
                    f'requested {requested} > declared {stage.quantity_rejected}'
                )
                raise RejectionOverflow(
                    f'Rejection lines would total {logged + requested} but stage '
                    f'{stage_id} declared only {stage.quantity_rejected} rejected'
                )

            for line in lines:
                self.store.append_rejection_line(line)

        logger.info(f'Logged {len(lines)} rejection line(s), {requested} unit(s), on stage {stage_id}')
        return lines
