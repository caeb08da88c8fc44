"""
Message Formatting

Renders signals, announcements and the risk disclaimer for a destination's
markup dialect. Two dialects are supported:

- Discord markdown: **bold**, no escaping, no prefixes
- Telegram HTML: <b>bold</b>, &, < and > escaped, emoji prefixes

All functions here are pure.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from signal_relay.signal_queue import Signal

# Embed colors
COLORS = {
    'INFO': 0x007ACC,        # Blue for status announcements
    'DISCLAIMER': 0xFFA500,  # Orange for the risk disclaimer
}

DISCLAIMER_LABEL = 'Risk Disclaimer:'
DISCLAIMER_TEXT = (
    'Bobby Trend Score is for informational purposes only and not financial '
    'advice. Trading involves substantial risk. Past performance does not '
    'guarantee future results.'
)


def escape_html(text: str) -> str:
    """Escape the characters Telegram's HTML parse mode reserves."""
    return text.replace('&', '&amp;').replace('<', '&lt;').replace('>', '&gt;')


@dataclass(frozen=True)
class Markup:
    """A destination's markup dialect."""
    name: str
    bold_open: str
    bold_close: str
    escape_values: bool = False
    info_prefix: str = ''
    warning_prefix: str = ''
    bold_disclaimer_label: bool = True

    def bold(self, text: str) -> str:
        return f"{self.bold_open}{text}{self.bold_close}"

    def escape(self, text: str) -> str:
        return escape_html(text) if self.escape_values else text


DISCORD_MARKUP = Markup(
    name='discord',
    bold_open='**',
    bold_close='**',
    bold_disclaimer_label=False,
)

TELEGRAM_MARKUP = Markup(
    name='telegram',
    bold_open='<b>',
    bold_close='</b>',
    escape_values=True,
    info_prefix='ℹ️ ',
    warning_prefix='⚠️ ',
)


@dataclass
class Embed:
    """A colored side-panel attached to a message."""
    description: str
    color: int = COLORS['INFO']
    title: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        embed: Dict[str, Any] = {'description': self.description, 'color': self.color}
        if self.title:
            embed['title'] = self.title
        embed.update(self.extra)
        return embed


def format_score(score: float) -> str:
    """Render a trend score without a trailing .0 when integral."""
    if float(score).is_integer():
        return str(int(score))
    return str(score)


def format_signal(signal: Signal, markup: Markup) -> str:
    """
    Render a signal as newline-joined 'label: value' lines.

    Stop, Entry and Target are only included when the morning breaker entry
    is ON and the value is present. Reverse Signal Detected? is always last.
    """
    fields = [
        ('Trend:', signal.trend),
        ('Trend Score:', format_score(signal.trend_score)),
        ('Trend Lock Activated:', signal.trend_lock_activated),
        ('Securities:', signal.securities),
        ('Morning Breaker Entry:', signal.morning_breaker_entry),
    ]

    if signal.morning_breaker_on:
        for label, value in (
            ('Stop:', signal.stop),
            ('Entry:', signal.entry),
            ('Target:', signal.target),
        ):
            if value:
                fields.append((label, value))

    fields.append(('Reverse Signal Detected?:', signal.reverse_signal_detected))

    return '\n'.join(
        f"{markup.bold(label)} {markup.escape(value)}" for label, value in fields
    )


def format_announcement(raw: str, markup: Markup) -> str:
    """Render announcement text with the markup's info prefix."""
    return f"{markup.info_prefix}{markup.escape(raw)}"


def format_disclaimer(markup: Markup) -> str:
    """Render the fixed risk disclaimer. Discord keeps the label plain inside its orange embed."""
    label = markup.bold(DISCLAIMER_LABEL) if markup.bold_disclaimer_label else DISCLAIMER_LABEL
    return (
        f"{markup.warning_prefix}{label} "
        f"{markup.escape(DISCLAIMER_TEXT)}"
    )


def disclaimer_embed(markup: Markup) -> Embed:
    return Embed(description=format_disclaimer(markup), color=COLORS['DISCLAIMER'])


def announcement_embed(raw: str, markup: Markup) -> Embed:
    return Embed(description=format_announcement(raw, markup), color=COLORS['INFO'])
