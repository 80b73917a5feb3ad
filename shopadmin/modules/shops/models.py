"""
Shop Account Models
===================

Lifecycle status of a shop account and the transitions an admin can apply.
"""

import re
from datetime import datetime, timezone
from enum import Enum


class ShopStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    FROZEN = 'frozen'

    @classmethod
    def normalize(cls, value, default=None):
        """Map a requested status to a member, falling back to approved"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return default if default is not None else cls.APPROVED

    @property
    def account_status(self):
        """Value of the legacy ``accountStatus`` field"""
        return 'active' if self is ShopStatus.APPROVED else self.value


class ShopAction(str, Enum):
    APPROVE = 'approve'
    REJECT = 'reject'
    FREEZE = 'freeze'
    UNFREEZE = 'unfreeze'


# Every admin action is accepted from every status.
TRANSITIONS = {
    ShopStatus.PENDING: {
        ShopAction.APPROVE: ShopStatus.APPROVED,
        ShopAction.REJECT: ShopStatus.REJECTED,
        ShopAction.FREEZE: ShopStatus.FROZEN,
        ShopAction.UNFREEZE: ShopStatus.APPROVED,
    },
    ShopStatus.APPROVED: {
        ShopAction.APPROVE: ShopStatus.APPROVED,
        ShopAction.REJECT: ShopStatus.REJECTED,
        ShopAction.FREEZE: ShopStatus.FROZEN,
        ShopAction.UNFREEZE: ShopStatus.APPROVED,
    },
    ShopStatus.REJECTED: {
        ShopAction.APPROVE: ShopStatus.APPROVED,
        ShopAction.REJECT: ShopStatus.REJECTED,
        ShopAction.FREEZE: ShopStatus.FROZEN,
        ShopAction.UNFREEZE: ShopStatus.APPROVED,
    },
    ShopStatus.FROZEN: {
        ShopAction.APPROVE: ShopStatus.APPROVED,
        ShopAction.REJECT: ShopStatus.REJECTED,
        ShopAction.FREEZE: ShopStatus.FROZEN,
        ShopAction.UNFREEZE: ShopStatus.APPROVED,
    },
}

# Timestamp field stamped by each action
TIMESTAMP_FIELDS = {
    ShopAction.APPROVE: 'approvedAt',
    ShopAction.REJECT: 'rejectedAt',
    ShopAction.FREEZE: 'lastStatusChange',
    ShopAction.UNFREEZE: 'lastStatusChange',
}


def _check_tables():
    for status in ShopStatus:
        missing = set(ShopAction) - set(TRANSITIONS.get(status, {}))
        if missing:
            raise RuntimeError(f"No transition from {status.value} for {sorted(a.value for a in missing)}")
    for action in ShopAction:
        targets = {TRANSITIONS[status][action] for status in ShopStatus}
        if len(targets) != 1:
            raise RuntimeError(f"{action.value} must lead to the same status from every status")
    if set(TIMESTAMP_FIELDS) != set(ShopAction):
        raise RuntimeError("Every shop action needs a timestamp field")


_check_tables()


def next_status(current, action):
    """Status after applying ``action``; unknown current values are treated as pending"""
    current = ShopStatus.normalize(current, default=ShopStatus.PENDING)
    return TRANSITIONS[current][ShopAction(action)]


def target_status(action):
    """Status an action writes, whatever the stored status is"""
    return next_status(ShopStatus.PENDING, action)


def now_iso():
    """UTC timestamp in the same shape as JavaScript's toISOString()"""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


_FRACTION = re.compile(r'\.(\d+)')


def parse_timestamp(value):
    """Parse a stored createdAt value; None when missing or unreadable"""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        # epoch milliseconds
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        # fromisoformat before 3.11 only takes 3 or 6 fractional digits
        text = _FRACTION.sub(lambda m: '.' + m.group(1)[:6].ljust(6, '0'), text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_newest_first(records):
    """Newest createdAt first; records without a usable createdAt go last"""
    dated = []
    undated = []
    for record in records:
        created = parse_timestamp(record.get('createdAt'))
        if created is None:
            undated.append(record)
        else:
            dated.append((created, record))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [record for _, record in dated] + undated


def shop_from_document(doc_id, data):
    """Listing shape of a shop document: its fields plus id and a resolved email"""
    shop = dict(data)
    shop['id'] = doc_id
    shop['email'] = data.get('userEmail') or data.get('email') or 'No email available'
    return shop
