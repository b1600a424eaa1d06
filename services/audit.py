import logging

from models import db, AuditLogEntry, current_time

logger = logging.getLogger(__name__)


def append(entity_type: str, entity_id, action: str, old_value=None, new_value=None, actor=None, notes=None):
    """Record an audit entry in the current session.

    The entry is committed together with the change it describes, so a
    rolled-back mutation leaves no audit trail behind.
    """
    entry = AuditLogEntry(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        old_value=old_value,
        new_value=new_value,
        actor_id=getattr(actor, 'id', None),
        notes=notes,
        created_at=current_time(),
    )
    db.session.add(entry)
    logger.debug('audit %s:%s %s by %s', entity_type, entity_id, action, entry.actor_id)
    return entry


def list_entries(page: int = 1, per_page: int = 25, entity_type=None, entity_id=None, max_per_page: int = 100):
    """Newest-first page of audit entries for admin review."""
    query = AuditLogEntry.query
    if entity_type:
        query = query.filter(AuditLogEntry.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditLogEntry.entity_id == str(entity_id))

    query = query.order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
    return query.paginate(page=page, per_page=per_page, max_per_page=max_per_page, error_out=False)
