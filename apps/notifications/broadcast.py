"""
Schedule-update broadcast.

Every slot mutation announces itself through `schedule_updated` once the
surrounding transaction commits. Receivers run through send_robust, so a
failing listener is logged and never breaks the booking that triggered it.

The built-in receiver bumps a per-instructor schedule version in the cache;
calendar screens poll `schedule-updates/` with the last version they saw.

Public API:
  schedule_changed(slot)
  broadcast_schedule_update(instructor_id, class_type)
  get_schedule_version(instructor_id, class_type)
"""
import logging
from functools import partial

from django.core.cache import cache
from django.db import transaction
from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

# kwargs: instructor_id (str), class_type (str)
schedule_updated = Signal()

VERSION_KEY = 'schedule-version:{instructor_id}:{class_type}'
VERSION_TTL_SECONDS = 60 * 60 * 24 * 7


def _version_key(instructor_id, class_type) -> str:
    return VERSION_KEY.format(instructor_id=instructor_id, class_type=class_type)


def broadcast_schedule_update(instructor_id, class_type):
    responses = schedule_updated.send_robust(
        sender=None,
        instructor_id=str(instructor_id),
        class_type=str(class_type),
    )
    for listener, result in responses:
        if isinstance(result, Exception):
            logger.error(
                'Schedule broadcast listener %r failed for instructor %s: %s',
                listener, instructor_id, result,
            )


def schedule_changed(slot):
    """Queue a broadcast for the slot's schedule after the current transaction commits."""
    transaction.on_commit(
        partial(broadcast_schedule_update, slot.instructor_id, slot.class_type)
    )


def get_schedule_version(instructor_id, class_type) -> int:
    return cache.get(_version_key(instructor_id, class_type), 0)


@receiver(schedule_updated)
def bump_schedule_version(sender, instructor_id, class_type, **kwargs):
    key = _version_key(instructor_id, class_type)
    try:
        cache.incr(key)
    except ValueError:
        # first change since the key expired
        cache.set(key, 1, VERSION_TTL_SECONDS)
