"""
Scheduled Message Templates

Announcement texts are editable in the Messages table (columns Type,
Message). Every announcement type has a built-in default; types missing
from the table are appended back so operators always see the full set.

Templates are reloaded on every use so edits take effect on the next
announcement without a restart.
"""

import logging
from typing import Dict

from signal_relay.row_store import RowStore

logger = logging.getLogger(__name__)

MESSAGE_HEADERS = ['Type', 'Message']

NEXT_BUSINESS_DAY_PLACEHOLDER = '{nextBusinessDay}'

DEFAULT_TEMPLATES: Dict[str, str] = {
    'closing': 'Bobby Trend Score reopens at 9:30am ET on {nextBusinessDay}.',
    'midnight': 'Bobby Trend Score will open at 9:30am ET today.',
    'weekend': (
        'Bobby is resting, see you on Monday morning. '
        'Bobby Trend Score reopens at 9:30am ET on {nextBusinessDay}.'
    ),
}


class MessageTemplates:
    """
    Self-healing template table.

    Usage:
        templates = MessageTemplates(store).load()
        text = templates['closing']
    """

    def __init__(self, store: RowStore, table: str = 'Messages'):
        self.store = store
        self.table = table

    def load(self) -> Dict[str, str]:
        """
        Load templates, falling back to defaults.

        Creates the table with every default when it does not exist, and
        appends defaults for types the table is missing. Rows with an empty
        message keep the default text.

        Returns:
            Mapping of announcement type -> template text
        """
        templates = dict(DEFAULT_TEMPLATES)

        if self.store.ensure_table(self.table, MESSAGE_HEADERS):
            self._append_defaults(list(DEFAULT_TEMPLATES))
            return templates

        seen = set()
        for row in self.store.read_rows(self.table):
            kind = str(row.get('Type', '')).strip().lower()
            message = str(row.get('Message', '')).strip()
            if kind not in DEFAULT_TEMPLATES:
                continue
            seen.add(kind)
            if message:
                templates[kind] = message

        missing = [kind for kind in DEFAULT_TEMPLATES if kind not in seen]
        if missing:
            self._append_defaults(missing)

        return templates

    def _append_defaults(self, kinds) -> None:
        self.store.append_rows(
            self.table,
            [{'Type': kind, 'Message': DEFAULT_TEMPLATES[kind]} for kind in kinds],
        )
        logger.info(f"Added default message template(s): {', '.join(kinds)}")


def render_template(template: str, next_business_day: str = '') -> str:
    """Substitute the next-business-day placeholder."""
    return template.replace(NEXT_BUSINESS_DAY_PLACEHOLDER, next_business_day)
