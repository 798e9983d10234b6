import threading
import time

from django.test import SimpleTestCase

from production.exceptions import AlreadyDispatched, ExternalHandoffFailed, InvalidTransition, StageTerminal
from production.outsourcing import OutsourcingHandoff, DeadlineExceeded, call_with_deadline
from production.store import InMemoryStageStore
from utils.enums import StageNameChoices, StageStatusChoices as Status, StageActionChoices as Action
from .helpers import (
    make_stage, snapshot, RecordingIssuer, FailingIssuer, ExplodingIssuer, HangingIssuer, slow_clock
)


class OutsourcingHandoffTest(SimpleTestCase):

    def setUp(self):
        self.store = InMemoryStageStore()
        self.issuer = RecordingIssuer()
        self.transitions = []
        self.handoff = self.make_handoff(self.issuer)
        self.stage = make_stage(
            self.store, stage_name=StageNameChoices.PRINTING_OR_EMBROIDERY, sequence_index=3,
            outsourced=True, vendor_ref='VND-EMB-01'
        )

    def make_handoff(self, issuer, **kwargs):
        return OutsourcingHandoff(
            self.store, issuer=issuer, timeout=5,
            on_transition=lambda stage, transition, user: self.transitions.append(transition),
            **kwargs
        )

    def test_dispatch(self):
        stage, transition = self.handoff.dispatch(self.stage.pk)

        self.assertEqual(stage.status, Status.OUTSOURCED_PENDING)
        self.assertEqual(stage.outward_document_number, f'OUT-{self.stage.pk}-1')
        self.assertIsNotNone(stage.actual_start_time)
        self.assertEqual(transition.action, Action.SEND_TO_VENDOR)
        self.assertEqual(self.store.load(self.stage.pk).status, Status.OUTSOURCED_PENDING)
        self.assertEqual(len(self.transitions), 1)

    def test_second_dispatch_issues_nothing(self):
        self.handoff.dispatch(self.stage.pk)
        before = snapshot(self.store.load(self.stage.pk))

        with self.assertLogs('production.outsourcing', level='WARNING'):
            with self.assertRaises(AlreadyDispatched) as ctx:
                self.handoff.dispatch(self.stage.pk)

        self.assertEqual(ctx.exception.code, 'already_dispatched')
        self.assertEqual(len(self.issuer.calls), 1)
        self.assertEqual(snapshot(self.store.load(self.stage.pk)), before)

    def test_dispatch_after_vendor_pause_is_still_duplicate(self):
        self.handoff.dispatch(self.stage.pk)
        self.handoff.receive(self.stage.pk)
        with self.store.locked(self.stage.pk) as stage:
            stage.status = Status.ON_HOLD
            self.store.save(stage)

        with self.assertRaises(AlreadyDispatched):
            self.handoff.dispatch(self.stage.pk)
        self.assertEqual(len(self.issuer.calls), 2)

    def test_failed_document_leaves_stage_pending(self):
        handoff = self.make_handoff(FailingIssuer())
        before = snapshot(self.store.load(self.stage.pk))

        with self.assertLogs('production.outsourcing', level='ERROR'):
            with self.assertRaises(ExternalHandoffFailed) as ctx:
                handoff.dispatch(self.stage.pk)

        self.assertIn('Challan service unavailable', str(ctx.exception))
        self.assertEqual(snapshot(self.store.load(self.stage.pk)), before)
        self.assertEqual(self.store.activities, [])
        self.assertEqual(self.transitions, [])

    def test_issuer_exception_is_reported_as_handoff_failure(self):
        handoff = self.make_handoff(ExplodingIssuer())

        with self.assertLogs('production.outsourcing', level='ERROR'):
            with self.assertRaises(ExternalHandoffFailed):
                handoff.dispatch(self.stage.pk)
        self.assertEqual(self.store.load(self.stage.pk).status, Status.PENDING)

    def test_slow_document_call_times_out(self):
        handoff = self.make_handoff(self.issuer, clock=slow_clock(30))

        with self.assertLogs('production.outsourcing', level='ERROR'):
            with self.assertRaises(ExternalHandoffFailed) as ctx:
                handoff.dispatch(self.stage.pk)

        self.assertIn('timeout', str(ctx.exception))
        self.assertEqual(len(self.issuer.calls), 1)
        stage = self.store.load(self.stage.pk)
        self.assertEqual(stage.status, Status.PENDING)
        self.assertEqual(stage.outward_document_number, '')

    def test_per_call_timeout_overrides_default(self):
        handoff = self.make_handoff(self.issuer, clock=slow_clock(3))

        with self.assertRaises(ExternalHandoffFailed):
            handoff.dispatch(self.stage.pk, timeout=1)

        stage, _ = handoff.dispatch(self.stage.pk)
        self.assertEqual(stage.status, Status.OUTSOURCED_PENDING)

    def test_dispatch_needs_outsourced_flag(self):
        internal = make_stage(self.store, stage_name=StageNameChoices.STITCHING, sequence_index=4)

        with self.assertRaises(InvalidTransition):
            self.handoff.dispatch(internal.pk)
        self.assertEqual(self.issuer.calls, [])

    def test_dispatch_of_terminal_stage(self):
        done = make_stage(self.store, sequence_index=4, status=Status.COMPLETED, outsourced=True)

        with self.assertRaises(StageTerminal):
            self.handoff.dispatch(done.pk)
        self.assertEqual(self.issuer.calls, [])

    def test_receive_then_complete(self):
        self.handoff.dispatch(self.stage.pk)

        stage, transition = self.handoff.receive(self.stage.pk)
        self.assertEqual(stage.status, Status.OUTSOURCED_IN_PROGRESS)
        self.assertEqual(stage.inward_document_number, f'IN-{self.stage.pk}-2')
        self.assertEqual(transition.from_status, Status.OUTSOURCED_PENDING)

        stage, _ = self.handoff.complete(self.stage.pk, 200, 194, 6)
        self.assertEqual(stage.status, Status.COMPLETED)
        self.assertEqual(stage.quantity_rejected, 6)
        self.assertEqual([t.action for t in self.transitions],
                         [Action.SEND_TO_VENDOR, Action.RECEIVE_FROM_VENDOR, Action.COMPLETE])

    def test_receive_before_dispatch(self):
        with self.assertRaises(InvalidTransition):
            self.handoff.receive(self.stage.pk)
        self.assertEqual(self.issuer.calls, [])

    def test_failed_receive_keeps_stage_with_vendor(self):
        self.handoff.dispatch(self.stage.pk)

        with self.assertRaises(ExternalHandoffFailed):
            self.make_handoff(FailingIssuer()).receive(self.stage.pk)

        stage = self.store.load(self.stage.pk)
        self.assertEqual(stage.status, Status.OUTSOURCED_PENDING)
        self.assertEqual(stage.inward_document_number, '')

    def test_complete_before_receive(self):
        self.handoff.dispatch(self.stage.pk)

        with self.assertRaises(InvalidTransition):
            self.handoff.complete(self.stage.pk, 10, 10, 0)
        self.assertEqual(self.store.load(self.stage.pk).status, Status.OUTSOURCED_PENDING)


class ThreadRecordingIssuer(RecordingIssuer):
    enforces_timeout = True

    def issue_outward_document(self, stage_id, order_id, timeout=None, vendor_ref=''):
        self.thread = threading.current_thread()
        return super().issue_outward_document(stage_id, order_id, timeout, vendor_ref)


class DocumentDeadlineTest(SimpleTestCase):
    """The handoff gives up on the issuer at the deadline instead of waiting it out"""

    def setUp(self):
        self.store = InMemoryStageStore()
        self.stage = make_stage(
            self.store, stage_name=StageNameChoices.PRINTING_OR_EMBROIDERY, sequence_index=3, outsourced=True
        )

    def test_hanging_issuer_is_abandoned_at_deadline(self):
        issuer = HangingIssuer(hold=3)
        self.addCleanup(issuer.release.set)
        handoff = OutsourcingHandoff(self.store, issuer=issuer, timeout=0.2)

        started = time.monotonic()
        with self.assertLogs('production.outsourcing', level='ERROR'):
            with self.assertRaises(ExternalHandoffFailed) as ctx:
                handoff.dispatch(self.stage.pk)
        elapsed = time.monotonic() - started

        self.assertGreaterEqual(elapsed, 0.2)
        self.assertLess(elapsed, 1.0)
        self.assertIn('0.2s timeout', str(ctx.exception))
        stage = self.store.load(self.stage.pk)
        self.assertEqual(stage.status, Status.PENDING)
        self.assertEqual(stage.outward_document_number, '')

        # the stage lock was released with the failure
        stage, _ = OutsourcingHandoff(self.store, issuer=RecordingIssuer(), timeout=5).dispatch(self.stage.pk)
        self.assertEqual(stage.status, Status.OUTSOURCED_PENDING)
        self.assertEqual(stage.outward_document_number, f'OUT-{self.stage.pk}-1')

    def test_issuer_answering_in_time(self):
        issuer = HangingIssuer(hold=3)
        issuer.release.set()

        stage, _ = OutsourcingHandoff(self.store, issuer=issuer, timeout=2).dispatch(self.stage.pk)

        self.assertEqual(stage.status, Status.OUTSOURCED_PENDING)

    def test_self_bounding_issuer_runs_on_caller_thread(self):
        issuer = ThreadRecordingIssuer()

        OutsourcingHandoff(self.store, issuer=issuer, timeout=2).dispatch(self.stage.pk)

        self.assertIs(issuer.thread, threading.current_thread())

    def test_call_with_deadline(self):
        self.assertEqual(call_with_deadline(lambda: 42, 1), 42)

        def fail():
            raise ConnectionError('reset by peer')

        with self.assertRaises(ConnectionError):
            call_with_deadline(fail, 1)

        gate = threading.Event()
        self.addCleanup(gate.set)
        with self.assertRaises(DeadlineExceeded):
            call_with_deadline(lambda: gate.wait(3), 0.05)
