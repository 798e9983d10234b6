"""
Stage stores

Persistence collaborators for the workflow engine. Each store gives the
engine exclusive access to one stage for the span of a ``locked`` block:
writes made inside the block are committed together on a clean exit and
discarded if the block raises.
"""
import copy
import itertools
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager

from django.db import transaction
from django.utils import timezone
from django.utils.module_loading import import_string

from utils.enums import ProductionOrderStatusChoices
from . import conf, progress
from .exceptions import StageNotFound, OrderNotFound
from .models import ProductionOrder, ProductionStage, RejectionLine, StageActivity

logger = logging.getLogger(__name__)


def apply_summary(order, summary):
    """Copy a stage roll-up onto the order and move its aggregate status"""
    now = timezone.now()
    order.progress_percentage = summary['percent']
    order.approved_quantity = summary['approved_quantity']
    order.rejected_quantity = summary['rejected_quantity']
    order.produced_quantity = summary['produced_quantity']

    if summary['is_finished']:
        order.status = ProductionOrderStatusChoices.COMPLETED
        order.actual_end_date = order.actual_end_date or now
    elif summary['started']:
        order.status = ProductionOrderStatusChoices.IN_PRODUCTION
        order.actual_start_date = order.actual_start_date or now
    return order


class StageStore:
    """Interface consumed by the workflow engine"""

    def load(self, stage_id):
        raise NotImplementedError

    def save(self, stage):
        raise NotImplementedError

    def load_rejection_lines(self, stage_id):
        raise NotImplementedError

    def append_rejection_line(self, line):
        raise NotImplementedError

    def stages_for_order(self, order_id):
        raise NotImplementedError

    def has_order(self, order_id):
        raise NotImplementedError

    def create_order(self, order, stages):
        """Persist a new order together with its initial pending stages"""
        raise NotImplementedError

    @contextmanager
    def locked(self, stage_id):
        raise NotImplementedError
        yield

    def record_transition(self, stage, transition, user=None):
        """Persist the audit trail of a transition and return the order roll-up"""
        raise NotImplementedError

    def on_commit(self, func):
        raise NotImplementedError


class DjangoStageStore(StageStore):
    """
    ORM-backed store. ``locked`` opens a transaction and takes a row lock on
    the stage with SELECT ... FOR UPDATE.
    """

    def load(self, stage_id):
        try:
            return ProductionStage.objects.get(pk=stage_id)
        except ProductionStage.DoesNotExist:
            raise StageNotFound(f'Stage {stage_id} not found')

    def save(self, stage):
        stage.version += 1
        stage.save()
        return stage

    def load_rejection_lines(self, stage_id):
        return RejectionLine.objects.filter(stage_id=stage_id).order_by('id')

    def append_rejection_line(self, line):
        line.save()
        return line

    def stages_for_order(self, order_id):
        return list(ProductionStage.objects.filter(order_id=order_id).order_by('sequence_index'))

    def has_order(self, order_id):
        return ProductionOrder.objects.filter(pk=order_id).exists()

    def create_order(self, order, stages):
        with transaction.atomic():
            order.save()
            for stage in stages:
                stage.order = order
            ProductionStage.objects.bulk_create(stages)
        return order

    @contextmanager
    def locked(self, stage_id):
        with transaction.atomic():
            try:
                stage = ProductionStage.objects.select_for_update().get(pk=stage_id)
            except ProductionStage.DoesNotExist:
                raise StageNotFound(f'Stage {stage_id} not found')
            yield stage

    def record_transition(self, stage, transition, user=None):
        StageActivity.objects.create(
            stage_id=stage.pk,
            order_id=stage.order_id,
            action=transition.action,
            from_status=transition.from_status,
            to_status=transition.to_status,
            performed_by=user if user is not None and user.is_authenticated else None,
            metadata=transition.metadata,
        )
        return self.refresh_order(stage.order_id)

    def refresh_order(self, order_id):
        """Recompute the order roll-up under a short order-row lock"""
        try:
            order = ProductionOrder.objects.select_for_update().get(pk=order_id)
        except ProductionOrder.DoesNotExist:
            raise OrderNotFound(f'Production order {order_id} not found')

        summary = progress.summarize(self.stages_for_order(order_id))
        was_finished = order.is_finished
        apply_summary(order, summary)
        order.save()

        summary['order_completed'] = summary['is_finished'] and not was_finished
        return summary

    def on_commit(self, func):
        transaction.on_commit(func)


class InMemoryStageStore(StageStore):
    """
    Process-local store for demo mode and persistence-free tests. Holds
    unsaved model instances and hands out copies, so a failed block never
    leaks partial changes.
    """

    def __init__(self):
        self._stages = {}
        self._lines = defaultdict(list)
        self._locks = {}
        self._guard = threading.Lock()
        self._local = threading.local()
        self._orders = {}
        self._order_ids = itertools.count(1)
        self._stage_ids = itertools.count(1)
        self._line_ids = itertools.count(1)
        self.activities = []

    def _lock_for(self, stage_id):
        with self._guard:
            return self._locks.setdefault(stage_id, threading.Lock())

    def _pending(self):
        return getattr(self._local, 'pending', None)

    def add_stage(self, stage):
        if stage.pk is None:
            stage.pk = next(self._stage_ids)
        self._stages[stage.pk] = copy.copy(stage)
        return stage

    def load(self, stage_id):
        try:
            return copy.copy(self._stages[stage_id])
        except KeyError:
            raise StageNotFound(f'Stage {stage_id} not found')

    def save(self, stage):
        pending = self._pending()
        if pending is not None:
            pending.append(lambda: self._write_stage(stage))
        else:
            self._write_stage(stage)
        return stage

    def _write_stage(self, stage):
        stage.version += 1
        self._stages[stage.pk] = copy.copy(stage)

    def load_rejection_lines(self, stage_id):
        return tuple(self._lines.get(stage_id, ()))

    def append_rejection_line(self, line):
        pending = self._pending()
        if pending is not None:
            pending.append(lambda: self._write_line(line))
        else:
            self._write_line(line)
        return line

    def _write_line(self, line):
        line.pk = next(self._line_ids)
        line.created_at = timezone.now()
        self._lines[line.stage_id].append(line)

    def stages_for_order(self, order_id):
        stages = [copy.copy(stage) for stage in self._stages.values() if stage.order_id == order_id]
        return sorted(stages, key=lambda stage: stage.sequence_index)

    def has_order(self, order_id):
        return order_id in self._orders or any(stage.order_id == order_id for stage in self._stages.values())

    def create_order(self, order, stages):
        with self._guard:
            order.pk = next(self._order_ids)
        if not order.order_number:
            order.order_number = f'PRD-{timezone.now():%Y%m%d}-{order.pk:04d}'
        self._orders[order.pk] = order
        for stage in stages:
            stage.order_id = order.pk
            self.add_stage(stage)
        return order

    @contextmanager
    def locked(self, stage_id):
        with self._lock_for(stage_id):
            stage = self.load(stage_id)
            self._local.pending = []
            self._local.callbacks = []
            try:
                yield stage
            except BaseException:
                self._local.pending = None
                self._local.callbacks = None
                raise
            pending, callbacks = self._local.pending, self._local.callbacks
            self._local.pending = None
            self._local.callbacks = None
            for write in pending:
                write()
        for func in callbacks:
            func()

    def record_transition(self, stage, transition, user=None):
        pending = self._pending()
        entry = {'transition': transition, 'user': user}
        if pending is not None:
            pending.append(lambda: self.activities.append(entry))
        else:
            self.activities.append(entry)

        # The stage being changed is not written yet; summarise the pending view
        previous = self.stages_for_order(stage.order_id)
        stages = sorted(
            [s for s in previous if s.pk != stage.pk] + [stage],
            key=lambda s: s.sequence_index
        )
        summary = progress.summarize(stages)
        summary['order_completed'] = summary['is_finished'] and not progress.summarize(previous)['is_finished']

        order = self._orders.get(stage.order_id)
        if order is not None:
            if pending is not None:
                pending.append(lambda: apply_summary(order, summary))
            else:
                apply_summary(order, summary)
        return summary

    def on_commit(self, func):
        callbacks = getattr(self._local, 'callbacks', None)
        if callbacks is not None:
            callbacks.append(func)
        else:
            func()


_default_store = None


def get_stage_store():
    """Store configured in APPAREL_ERP_SETTINGS['STAGE_STORE']"""
    global _default_store
    if _default_store is None:
        _default_store = import_string(conf.get('STAGE_STORE'))()
    return _default_store


def reset_stage_store():
    global _default_store
    _default_store = None
