"""
Доменные перечисления (enum).

Используются во всей системе:
- роль узла в репликации
- виды контента и операции очереди
- статусы журнала и статусы контента
"""

from __future__ import annotations

import enum


class NodeRole(str, enum.Enum):
    """
    Роль узла: source отдаёт изменения, target только принимает.
    """

    source = "source"
    target = "target"


class ContentKind(str, enum.Enum):
    document = "document"
    attachment = "attachment"


class SyncOperation(str, enum.Enum):
    """
    Операция задачи очереди. delete зарезервирован и пока не обрабатывается.
    """

    sync = "sync"
    delete = "delete"


class LogStatus(str, enum.Enum):
    success = "success"
    error = "error"


class ContentStatus(str, enum.Enum):
    """
    Статус контента в системе-источнике.
    """

    draft = "draft"
    auto_draft = "auto-draft"
    published = "published"
    scheduled = "scheduled"
    pending_review = "pending-review"
    private = "private"
    trashed = "trashed"
    inherit = "inherit"


# Статусы, изменения в которых реплицируются на target
SYNCABLE_STATUSES = frozenset(
    {
        ContentStatus.published,
        ContentStatus.scheduled,
        ContentStatus.pending_review,
        ContentStatus.private,
        ContentStatus.trashed,
    }
)

# Приоритет задач: меньше значит раньше
PRIORITY_BY_KIND = {
    ContentKind.document: 1,
    ContentKind.attachment: 2,
}
