import threading

from django.test import SimpleTestCase

from production.exceptions import AlreadyDispatched, InvalidTransition, RejectionOverflow
from production.store import InMemoryStageStore
from production.workflow_service import StageWorkflowService
from utils.enums import StageNameChoices, StageStatusChoices as Status, StageActionChoices as Action
from .helpers import make_stage, RecordingIssuer

WORKERS = 8


def run_together(command, workers=WORKERS):
    """Release ``workers`` threads at once on ``command``; returns what each returned or raised"""
    barrier = threading.Barrier(workers)
    outcomes = []
    outcomes_lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            outcome = command()
        except Exception as e:
            outcome = e
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    return outcomes


class ConcurrentCommandTest(SimpleTestCase):
    """Commands racing on one stage are serialised by the stage lock"""

    def setUp(self):
        self.store = InMemoryStageStore()
        self.issuer = RecordingIssuer()
        self.service = StageWorkflowService(store=self.store, issuer=self.issuer, timeout=5)

    def test_parallel_start(self):
        stage = make_stage(self.store)

        outcomes = run_together(lambda: self.service.start_stage(stage.pk))

        self.assertEqual(len(outcomes), WORKERS)
        started = [o for o in outcomes if not isinstance(o, Exception)]
        refused = [o for o in outcomes if isinstance(o, InvalidTransition)]
        self.assertEqual(len(started), 1)
        self.assertEqual(len(refused), WORKERS - 1)
        self.assertTrue(all(e.code == 'invalid_transition' for e in refused))

        stage = self.store.load(stage.pk)
        self.assertEqual(stage.status, Status.IN_PROGRESS)
        self.assertEqual(stage.version, 1)
        self.assertEqual([a['transition'].action for a in self.store.activities], [Action.START])

    def test_parallel_rejection_lines_never_overflow(self):
        stage = make_stage(
            self.store, status=Status.COMPLETED,
            quantity_processed=10, quantity_approved=5, quantity_rejected=5
        )

        outcomes = run_together(lambda: self.service.add_rejection_line(stage.pk, 'cutting_error', 1))

        self.assertEqual(len(outcomes), WORKERS)
        overflowed = [o for o in outcomes if isinstance(o, RejectionOverflow)]
        self.assertEqual(len(overflowed), WORKERS - 5)
        self.assertEqual(len([o for o in outcomes if not isinstance(o, Exception)]), 5)
        self.assertEqual(self.service.ledger.logged_quantity(stage.pk), 5)
        self.assertEqual(len(self.service.rejection_lines(stage.pk)), 5)

    def test_parallel_dispatch_issues_one_document(self):
        stage = make_stage(
            self.store, stage_name=StageNameChoices.PRINTING_OR_EMBROIDERY, sequence_index=3, outsourced=True
        )

        with self.assertLogs('production.outsourcing', level='WARNING'):
            outcomes = run_together(lambda: self.service.dispatch_to_vendor(stage.pk))

        self.assertEqual(len([o for o in outcomes if isinstance(o, AlreadyDispatched)]), WORKERS - 1)
        self.assertEqual(len(self.issuer.calls), 1)
        stage = self.store.load(stage.pk)
        self.assertEqual(stage.status, Status.OUTSOURCED_PENDING)
        self.assertEqual(stage.outward_document_number, f'OUT-{stage.pk}-1')

    def test_different_stages_do_not_block_each_other(self):
        stages = [
            make_stage(self.store, stage_name=name, sequence_index=index)
            for index, name in enumerate(
                [StageNameChoices.MATERIAL_REVIEW, StageNameChoices.CUTTING, StageNameChoices.STITCHING,
                 StageNameChoices.FINISHING],
                start=1
            )
        ]
        ids = iter(stage.pk for stage in stages)
        ids_lock = threading.Lock()

        def start_next():
            with ids_lock:
                stage_id = next(ids)
            return self.service.start_stage(stage_id)

        outcomes = run_together(start_next, workers=len(stages))

        self.assertFalse([o for o in outcomes if isinstance(o, Exception)])
        self.assertTrue(all(self.store.load(stage.pk).status == Status.IN_PROGRESS for stage in stages))
