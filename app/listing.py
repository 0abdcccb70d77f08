"""
List-view logic shared by the dashboard pages.

Every list page works the same way: filter a locally held list by free
text, a category/tab selector and a status/priority selector, sort by a
user-chosen key, then slice to a page. The generic pieces live at the top
of this module. The per-list rules (which fields are searchable, which
tabs exist, what each sort key means) follow below, one section per list.

Selector values of ``'all'`` or ``''`` mean "no filter".
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

ALL = 'all'

MAX_PAGE_SIZE = 100

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Generic helpers
# ---------------------------------------------------------------------------

def is_unfiltered(value) -> bool:
    return value is None or value == '' or value == ALL


def _as_text(value) -> str:
    if value is None:
        return ''
    return str(value).casefold()


def matches_search(item, query: Optional[str], fields: Sequence[str]) -> bool:
    """Case-insensitive substring match of ``query`` against ``fields``.

    List-valued fields (tags, participant names) match if any element does.
    An empty query matches everything.
    """
    needle = _as_text(query).strip()
    if not needle:
        return True
    for name in fields:
        value = getattr(item, name, None)
        if isinstance(value, (list, tuple, set)):
            if any(needle in _as_text(v) for v in value):
                return True
        elif needle in _as_text(value):
            return True
    return False


def _timestamp(value: Optional[datetime]) -> datetime:
    return value or _EPOCH


@dataclass
class Page:
    items: List[Any]
    page: int
    per_page: int
    total: int

    @property
    def pages(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page else 1

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def prev_num(self) -> Optional[int]:
        return self.page - 1 if self.has_prev else None

    @property
    def next_num(self) -> Optional[int]:
        return self.page + 1 if self.has_next else None


def paginate(items: Sequence, page: int = 1, per_page: int = 20) -> Page:
    """Slice ``items`` to a 1-based page, clamping the page into range."""
    per_page = max(1, min(int(per_page or 1), MAX_PAGE_SIZE))
    total = len(items)
    pages = max(1, math.ceil(total / per_page))
    page = min(max(1, int(page or 1)), pages)
    start = (page - 1) * per_page
    return Page(items=list(items[start:start + per_page]), page=page, per_page=per_page, total=total)


def sort_items(items: Iterable, sort: Optional[str], sorters: Dict[str, Callable[[List], List]],
               default: str) -> List:
    """Apply the sorter registered under ``sort``, falling back to ``default``."""
    sorter = sorters.get(sort or '') or sorters[default]
    return sorter(list(items))


@dataclass
class ListQuery:
    """View state of a list page, read from the query string."""
    search: str = ''
    tab: str = ALL
    type: str = ALL
    status: str = ALL
    priority: str = ALL
    course: str = ''
    sort: str = ''
    page: int = 1
    per_page: int = 20

    @classmethod
    def from_args(cls, args, default_sort: str = '', per_page: int = 20) -> ListQuery:
        def _int_arg(name, default):
            try:
                return int(args.get(name, default))
            except (TypeError, ValueError):
                return default

        return cls(
            search=(args.get('q') or '').strip(),
            tab=args.get('tab') or ALL,
            type=args.get('type') or ALL,
            status=args.get('status') or ALL,
            priority=args.get('priority') or ALL,
            course=args.get('course') or '',
            sort=args.get('sort') or default_sort,
            page=_int_arg('page', 1),
            per_page=_int_arg('per_page', per_page),
        )

    def to_args(self, **overrides) -> Dict[str, Any]:
        """Query-string arguments for links that keep the current view state."""
        args = {
            'q': self.search or None,
            'tab': None if self.tab == ALL else self.tab,
            'type': None if self.type == ALL else self.type,
            'status': None if self.status == ALL else self.status,
            'priority': None if self.priority == ALL else self.priority,
            'course': self.course or None,
            'sort': self.sort or None,
            'page': self.page if self.page > 1 else None,
        }
        args.update(overrides)
        return {k: v for k, v in args.items() if v is not None}


# ---------------------------------------------------------------------------
# Relative time
# ---------------------------------------------------------------------------

def time_ago(value: Optional[datetime], now: Optional[datetime] = None) -> str:
    if value is None:
        return ''
    now = now or datetime.now(timezone.utc)
    diff = now - value
    seconds = diff.total_seconds()
    if seconds < 60:
        return 'just now'
    minutes = int(seconds // 60)
    if minutes < 60:
        return f'{minutes} min ago'
    hours = minutes // 60
    if hours < 24:
        return f'{hours} h ago'
    days = diff.days
    if days == 1:
        return 'yesterday'
    if days < 7:
        return f'{days} days ago'
    return value.strftime('%Y-%m-%d')


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

NOTIFICATION_TABS = ('all', 'unread', 'important', 'favorites', 'assignment', 'grade', 'message')
NOTIFICATION_SEARCH_FIELDS = ('title', 'message', 'course_name')


def _notification_in_tab(notification, tab: str) -> bool:
    if is_unfiltered(tab):
        return True
    if tab == 'unread':
        return not notification.is_read
    if tab == 'important':
        return notification.is_important
    if tab == 'favorites':
        return notification.is_favorite
    return notification.category == tab


def _newest(items):
    return sorted(items, key=lambda n: _timestamp(n.created_at), reverse=True)


def _oldest(items):
    return sorted(items, key=lambda n: _timestamp(n.created_at))


NOTIFICATION_SORTS = {
    'newest': _newest,
    'oldest': _oldest,
    'importance': lambda items: sorted(_newest(items), key=lambda n: not n.is_important),
    'course': lambda items: sorted(items, key=lambda n: _as_text(n.course_name)),
}


def filter_notifications(notifications, query: ListQuery) -> List:
    return [
        n for n in notifications
        if matches_search(n, query.search, NOTIFICATION_SEARCH_FIELDS)
        and _notification_in_tab(n, query.tab)
        and (is_unfiltered(query.type) or n.type == query.type)
    ]


def notification_view(notifications, query: ListQuery) -> Page:
    filtered = filter_notifications(notifications, query)
    ordered = sort_items(filtered, query.sort, NOTIFICATION_SORTS, 'newest')
    return paginate(ordered, query.page, query.per_page)


def notification_tab_counts(notifications) -> Dict[str, int]:
    notifications = list(notifications)
    return {tab: sum(1 for n in notifications if _notification_in_tab(n, tab)) for tab in NOTIFICATION_TABS}


# ---------------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------------

PRIORITY_RANK = {'urgent': 4, 'high': 3, 'medium': 2, 'low': 1}
ANNOUNCEMENT_SEARCH_FIELDS = ('title', 'content', 'tags')

ANNOUNCEMENT_SORTS = {
    'newest': _newest,
    'oldest': _oldest,
    'priority': lambda items: sorted(_newest(items), key=lambda a: -PRIORITY_RANK.get(a.priority, 0)),
    'views': lambda items: sorted(items, key=lambda a: a.view_count, reverse=True),
}


def filter_announcements(announcements, query: ListQuery) -> List:
    return [
        a for a in announcements
        if matches_search(a, query.search, ANNOUNCEMENT_SEARCH_FIELDS)
        and (is_unfiltered(query.status) or a.status == query.status)
        and (is_unfiltered(query.priority) or a.priority == query.priority)
    ]


def announcement_view(announcements, query: ListQuery) -> Page:
    filtered = filter_announcements(announcements, query)
    ordered = sort_items(filtered, query.sort, ANNOUNCEMENT_SORTS, 'newest')
    return paginate(ordered, query.page, query.per_page)


def announcement_status_counts(announcements) -> Dict[str, int]:
    counts = {'all': 0, 'draft': 0, 'published': 0, 'archived': 0}
    for a in announcements:
        counts['all'] += 1
        if a.status in counts:
            counts[a.status] += 1
    return counts


# ---------------------------------------------------------------------------
# AI recommendations widget
# ---------------------------------------------------------------------------

RECOMMENDATION_GROUPS = {
    'learning': ('next_lesson', 'course_recommendation'),
    'review': ('review_content', 'supplementary_material'),
    'practice': ('practice_quiz',),
}


def confidence_level(confidence: float) -> str:
    if confidence >= 0.8:
        return 'high'
    if confidence >= 0.6:
        return 'medium'
    return 'low'


def is_visible_recommendation(rec, dismissed_ids: Iterable[str] = ()) -> bool:
    return rec.is_active and rec.dismissed_at is None and rec.id not in set(dismissed_ids)


def _recommendation_in_tab(rec, tab: str) -> bool:
    if is_unfiltered(tab):
        return True
    if tab in RECOMMENDATION_GROUPS:
        return rec.recommendation_type in RECOMMENDATION_GROUPS[tab]
    return rec.recommendation_type == tab


def filter_recommendations(recommendations, query: ListQuery, dismissed_ids: Iterable[str] = ()) -> List:
    dismissed = set(dismissed_ids)
    return [
        r for r in recommendations
        if is_visible_recommendation(r, dismissed)
        and _recommendation_in_tab(r, query.tab)
        and (is_unfiltered(query.priority) or r.priority == query.priority)
    ]


def rank_recommendations(recommendations) -> List:
    """Highest priority first, then highest confidence."""
    return sorted(
        recommendations,
        key=lambda r: (PRIORITY_RANK.get(r.priority, 0), r.confidence),
        reverse=True,
    )


def recommendation_view(recommendations, query: ListQuery, max_items: int = 6,
                        dismissed_ids: Iterable[str] = ()):
    """Return ``(shown, total_matching)`` for the widget."""
    filtered = filter_recommendations(recommendations, query, dismissed_ids)
    return rank_recommendations(filtered)[:max(0, max_items)], len(filtered)


def recommendation_tab_counts(recommendations, dismissed_ids: Iterable[str] = ()) -> Dict[str, int]:
    visible = [r for r in recommendations if is_visible_recommendation(r, dismissed_ids)]
    counts = {'all': len(visible)}
    for group in RECOMMENDATION_GROUPS:
        counts[group] = sum(1 for r in visible if _recommendation_in_tab(r, group))
    return counts


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------

ASSIGNMENT_SEARCH_FIELDS = ('title', 'course_name')
SUBMITTED_STATUSES = ('submitted', 'graded', 'late')


def submission_status(assignment) -> Optional[str]:
    submission = getattr(assignment, 'submission', None)
    if submission is None or submission.status == 'not_submitted':
        return None
    return submission.status


def is_overdue(assignment, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    if assignment.due_date is None or assignment.due_date >= now:
        return False
    return submission_status(assignment) not in SUBMITTED_STATUSES


def time_remaining(due_date: Optional[datetime], now: Optional[datetime] = None) -> str:
    if due_date is None:
        return 'no due date'
    now = now or datetime.now(timezone.utc)
    diff = due_date - now
    if diff < timedelta(0):
        return 'overdue'
    if diff.days > 0:
        return f'{diff.days} days left'
    hours = diff.seconds // 3600
    if hours > 0:
        return f'{hours} hours left'
    return 'due soon'


def _assignment_in_tab(assignment, tab: str, now: Optional[datetime] = None) -> bool:
    if is_unfiltered(tab):
        return True
    status = submission_status(assignment)
    if tab == 'pending':
        return status is None and not is_overdue(assignment, now)
    if tab == 'missing':
        return is_overdue(assignment, now) or status == 'missing'
    return status == tab


def _by_due_date(items):
    dated = sorted((a for a in items if a.due_date is not None), key=lambda a: a.due_date)
    return dated + [a for a in items if a.due_date is None]


ASSIGNMENT_SORTS = {
    'due_date': _by_due_date,
    'title': lambda items: sorted(items, key=lambda a: _as_text(a.title)),
    'course': lambda items: sorted(items, key=lambda a: _as_text(a.course_name)),
    'points': lambda items: sorted(items, key=lambda a: a.max_points, reverse=True),
}


def filter_assignments(assignments, query: ListQuery, now: Optional[datetime] = None) -> List:
    return [
        a for a in assignments
        if matches_search(a, query.search, ASSIGNMENT_SEARCH_FIELDS)
        and (not query.course or a.course_id == query.course)
        and _assignment_in_tab(a, query.tab, now)
    ]


def assignment_view(assignments, query: ListQuery, now: Optional[datetime] = None) -> Page:
    filtered = filter_assignments(assignments, query, now)
    ordered = sort_items(filtered, query.sort, ASSIGNMENT_SORTS, 'due_date')
    return paginate(ordered, query.page, query.per_page)


def assignment_tab_counts(assignments, now: Optional[datetime] = None) -> Dict[str, int]:
    assignments = list(assignments)
    tabs = ('all', 'pending', 'submitted', 'graded', 'late', 'missing')
    return {tab: sum(1 for a in assignments if _assignment_in_tab(a, tab, now)) for tab in tabs}


def course_choices(assignments) -> List[tuple]:
    """Distinct ``(course_id, course_name)`` pairs for the course selector."""
    seen = {}
    for a in assignments:
        if a.course_id and a.course_id not in seen:
            seen[a.course_id] = a.course_name
    return sorted(seen.items(), key=lambda pair: _as_text(pair[1]))


# ---------------------------------------------------------------------------
# AI models (admin)
# ---------------------------------------------------------------------------

MODEL_SEARCH_FIELDS = ('name', 'description', 'tags')


def filter_models(models, query: ListQuery) -> List:
    filtered = [
        m for m in models
        if matches_search(m, query.search, MODEL_SEARCH_FIELDS)
        and (is_unfiltered(query.status) or m.status == query.status)
        and (is_unfiltered(query.type) or m.type == query.type)
    ]
    return sorted(filtered, key=lambda m: _as_text(m.name))


def model_overview(models) -> Dict[str, Any]:
    models = list(models)
    running = [m for m in models if m.status in ('active', 'deployed')]
    return {
        'total': len(models),
        'running': len(running),
        'training': sum(1 for m in models if m.status == 'training'),
        'failed': sum(1 for m in models if m.status == 'failed'),
        'avg_accuracy': round(sum(m.accuracy for m in running) / len(running), 1) if running else 0,
        'total_predictions': sum(m.total_predictions for m in models),
    }


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------

CONVERSATION_SEARCH_FIELDS = ('subject', 'course_name', 'participant_names')


def filter_conversations(conversations, query: ListQuery) -> List:
    filtered = [
        c for c in conversations
        if matches_search(c, query.search, CONVERSATION_SEARCH_FIELDS)
        and (query.tab != 'unread' or c.unread_count > 0)
    ]
    return sorted(filtered, key=lambda c: _timestamp(c.last_activity_at), reverse=True)


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------

SUBSCRIPTION_STATUSES = ('active', 'paused', 'cancelled', 'expired', 'past_due')


def filter_subscriptions(subscriptions, status: str = ALL) -> List:
    return [s for s in subscriptions if is_unfiltered(status) or s.status == status]


@dataclass
class SubscriptionStats:
    active: int = 0
    monthly_spend: float = 0.0
    currency: str = 'USD'
    next_payment_amount: float = 0.0
    next_payment_date: Optional[datetime] = None
    by_status: Dict[str, int] = field(default_factory=dict)


def subscription_stats(subscriptions) -> SubscriptionStats:
    """Local stats: yearly plans count as price / 12 towards monthly spend."""
    subscriptions = list(subscriptions)
    stats = SubscriptionStats(by_status={s: 0 for s in SUBSCRIPTION_STATUSES})
    upcoming = []
    for sub in subscriptions:
        stats.by_status[sub.status] = stats.by_status.get(sub.status, 0) + 1
        if sub.status != 'active':
            continue
        stats.active += 1
        stats.currency = sub.currency
        stats.monthly_spend += sub.price / 12 if sub.plan == 'yearly' else sub.price
        if sub.next_payment_date and not sub.cancel_at_period_end:
            upcoming.append(sub)
    stats.monthly_spend = round(stats.monthly_spend, 2)
    if upcoming:
        nxt = min(upcoming, key=lambda s: s.next_payment_date)
        stats.next_payment_amount = nxt.price
        stats.next_payment_date = nxt.next_payment_date
    return stats
