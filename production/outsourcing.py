"""
Outsourcing Handoff
Stages fulfilled by an external vendor: dispatch -> receive -> complete.

The document call and the status change commit as one unit. The issuer is
called inside the stage lock before anything is written, so a failed or
timed-out call leaves the stage exactly as it was.

Issuers that do not bound their own calls run on a worker thread and are
abandoned at the deadline, so the stage lock is never held much past the
caller's timeout.
"""
import logging
import threading
import time
from functools import partial

from django.db import connections
from django.utils.module_loading import import_string

from utils.enums import StageStatusChoices as Status, StageActionChoices as Action
from . import conf
from .exceptions import AlreadyDispatched, ExternalHandoffFailed, StageTerminal
from .state_machine import StageStateMachine

logger = logging.getLogger(__name__)


class DeadlineExceeded(Exception):
    pass


def call_with_deadline(call, timeout, label='call'):
    """
    Run ``call`` on a daemon thread and wait at most ``timeout`` seconds for
    it. Raises DeadlineExceeded if it is still running; its eventual result
    is dropped. Exceptions raised by ``call`` are re-raised here.
    """
    outcome = {}
    finished = threading.Event()
    abandoned = threading.Event()

    def worker():
        try:
            outcome['result'] = call()
        except Exception as e:
            outcome['error'] = e
        finally:
            connections.close_all()
            finished.set()
            if abandoned.is_set():
                logger.warning(f'{label} finished after its deadline; result discarded')

    threading.Thread(target=worker, name='document-issuer', daemon=True).start()
    if not finished.wait(timeout):
        abandoned.set()
        raise DeadlineExceeded(label)

    if 'error' in outcome:
        raise outcome['error']
    return outcome['result']


def get_document_issuer():
    return import_string(conf.get('DOCUMENT_ISSUER'))()


class OutsourcingHandoff:

    def __init__(self, store, issuer=None, machine=None, timeout=None, on_transition=None,
                 clock=time.monotonic):
        self.store = store
        self.issuer = issuer or get_document_issuer()
        self.machine = machine or StageStateMachine()
        self.timeout = timeout if timeout is not None else conf.get('DOCUMENT_ISSUER_TIMEOUT_SECONDS')
        self.on_transition = on_transition
        self.clock = clock

    def dispatch(self, stage_id, timeout=None, user=None):
        """Send a pending outsourced stage to its vendor with an outward document"""
        return self._run(stage_id, lambda stage: self._dispatch(stage, timeout), user)

    def receive(self, stage_id, timeout=None, user=None):
        """Vendor acknowledged the goods; expect the inward document"""
        return self._run(stage_id, lambda stage: self._receive(stage, timeout), user)

    def complete(self, stage_id, processed, approved, rejected, material_used=None, notes=None,
                 end_time=None, user=None):
        """Completion path of the state machine; refused until the vendor receive is recorded"""
        return self._run(
            stage_id,
            lambda stage: self.machine.complete(stage, processed, approved, rejected, material_used, notes, end_time),
            user
        )

    def _run(self, stage_id, apply, user):
        with self.store.locked(stage_id) as stage:
            transition = apply(stage)
            self.store.save(stage)
            if self.on_transition is not None:
                self.on_transition(stage, transition, user)
        return stage, transition

    def _dispatch(self, stage, timeout):
        if stage.is_terminal:
            raise StageTerminal(stage.status, Action.SEND_TO_VENDOR)
        if stage.status in (Status.OUTSOURCED_PENDING, Status.OUTSOURCED_IN_PROGRESS) \
                or stage.outward_document_number:
            logger.warning(f'Duplicate dispatch for stage {stage.pk} ignored (status {stage.status})')
            raise AlreadyDispatched(
                f'Stage {stage.pk} was already dispatched '
                f'(outward document {stage.outward_document_number or "pending"})'
            )
        self.machine.check_send_to_vendor(stage)

        result = self._issue(self.issuer.issue_outward_document, stage, timeout, 'outward')
        return self.machine.send_to_vendor(stage, result.document_number)

    def _receive(self, stage, timeout):
        self.machine.check_receive_from_vendor(stage)

        result = self._issue(self.issuer.issue_inward_document, stage, timeout, 'inward')
        return self.machine.receive_from_vendor(stage, result.document_number)

    def _issue(self, issue, stage, timeout, kind):
        timeout = self.timeout if timeout is None else timeout
        call = partial(issue, stage.pk, stage.order_id, timeout=timeout, vendor_ref=stage.vendor_ref)
        started = self.clock()
        try:
            if timeout is None or getattr(self.issuer, 'enforces_timeout', False):
                result = call()
            else:
                result = call_with_deadline(call, timeout, f'{kind} document for stage {stage.pk}')
        except DeadlineExceeded:
            logger.error(f'{kind.title()} document for stage {stage.pk} did not return within {timeout}s')
            raise ExternalHandoffFailed(
                f'{kind.title()} document call exceeded {timeout}s timeout; stage left unchanged'
            )
        except Exception as e:
            logger.error(f'{kind.title()} document for stage {stage.pk} failed: {e}', exc_info=True)
            raise ExternalHandoffFailed(f'{kind.title()} document could not be issued: {e}')

        elapsed = self.clock() - started
        if timeout is not None and elapsed > timeout:
            logger.error(f'{kind.title()} document for stage {stage.pk} timed out after {elapsed:.2f}s')
            raise ExternalHandoffFailed(
                f'{kind.title()} document call exceeded {timeout}s timeout; stage left unchanged'
            )
        if not result.ok:
            logger.error(f'{kind.title()} document for stage {stage.pk} rejected: {result.error}')
            raise ExternalHandoffFailed(
                f'{kind.title()} document could not be issued: {result.error or "unknown error"}'
            )
        return result
