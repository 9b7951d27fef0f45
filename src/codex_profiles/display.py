# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/codex_profiles/display.py
"""
Terminal rendering.

All styling decisions flow from an explicit ``DisplayConfig`` value rather
than process-wide state. Formatters return strings: rich markup when colour
is enabled (user text escaped), plain text otherwise, so callers and tests
can treat the no-colour output as the literal text that will be printed.
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from . import messages
from .config import colors_disabled_by_env
from .hints import no_profiles_hint, normalize_error, unsaved_save_line


OUTPUT_INDENT = " "


@dataclass(frozen=True)
class DisplayConfig:
    """
    Output settings for one command run.

    Attributes:
        plain: No separators, indentation or badges
        use_color: Emit ANSI styling
    """

    plain: bool = False
    use_color: bool = False

    @classmethod
    def detect(cls, plain: bool = False) -> "DisplayConfig":
        use_color = (
            not plain
            and not colors_disabled_by_env()
            and hasattr(sys.stdout, "isatty")
            and sys.stdout.isatty()
        )
        return cls(plain=plain, use_color=use_color)

    def style(self, text: str, spec: str) -> str:
        """Wrap ``text`` in a rich style when colour is on."""
        if not self.use_color:
            return text
        return f"[{spec}]{escape(text)}[/]"

    def text(self, text: str) -> str:
        """Make raw user text safe to embed in styled output."""
        return escape(text) if self.use_color else text

    def console(self, stderr: bool = False) -> Console:
        return Console(
            file=sys.stderr if stderr else sys.stdout,
            color_system="auto" if self.use_color else None,
            force_terminal=self.use_color or None,
            highlight=False,
            emoji=False,
            soft_wrap=True,
        )

    def print(self, text: str, stderr: bool = False) -> None:
        self.console(stderr).print(text, markup=self.use_color)

    def print_block(self, message: str) -> None:
        if not self.plain:
            message = indent_output(message)
        self.print(f"\n{message}\n")

    def warn(self, message: str) -> None:
        self.print(self.format_warning(message), stderr=True)

    def error(self, message: str) -> None:
        self.print(self.format_error(message), stderr=True)

    # =========================================================================
    # MESSAGE FORMATTERS
    # =========================================================================

    def format_action(self, message: str) -> str:
        """``message`` may already hold markup from ``format_profile_display``."""
        if not self.use_color:
            return f"✅ {message}"
        return f"[bold green]✅ {message}[/]"

    def format_cancel(self) -> str:
        return self.style(messages.CANCELLED, "dim italic")

    def format_warning(self, message: str) -> str:
        prefix = messages.UI_WARNING_PREFIX
        lines = message.splitlines() or [""]
        indent = " " * len(prefix)
        text = "\n".join([f"{prefix}{lines[0]}"] + [f"{indent}{line}" for line in lines[1:]])
        return self.style(text, "dim italic yellow")

    def format_hint(self, message: str) -> str:
        if self.plain:
            return messages.UI_INFO_PREFIX.format(message)
        return "\n\n" + self.style(message, "italic")

    def format_error(self, message: str) -> str:
        lines = normalize_error(message).splitlines() or [""]
        prefix = self.style(messages.UI_ERROR_PREFIX, "bold red")
        out = [f"{prefix} {self.text(lines[0])}"]
        out.extend(self.style(line, "dim italic") for line in lines[1:])
        return "\n".join(out)

    def format_no_profiles(self, auth_path: Path) -> str:
        return messages.UI_NO_SAVED_PROFILES.format(self.format_hint(no_profiles_hint(auth_path)))

    def format_unsaved_warning(self) -> List[str]:
        return [
            self.style(messages.UI_WARNING_UNSAVED_PROFILE, "dim italic yellow"),
            self.style(unsaved_save_line(), "dim italic"),
        ]

    def format_usage_unavailable(self, text: str) -> str:
        if self.plain:
            return messages.UI_INFO_PREFIX.format(text)
        return self.style(text, "bold red")

    def format_dimmed(self, text: str) -> str:
        return self.style(text, "dim italic")

    # =========================================================================
    # PROFILE DISPLAY
    # =========================================================================

    def _plan_badge(self, plan: str) -> str:
        plan_upper = plan.upper()
        if self.use_color:
            return self.style(f" {plan_upper} ", "white on bright_black")
        return f"[{plan_upper}]"

    def _label_suffix(self, label: Optional[str]) -> str:
        if label is None:
            return ""
        if self.use_color:
            return self.style(f" {label} ", "dim black on white")
        return f" ({label})"

    def format_profile_display(
        self,
        email: Optional[str],
        plan: Optional[str],
        label: Optional[str],
        is_current: bool,
    ) -> str:
        """
        Render ``[PLAN] email (label)``. An API key without a hash label
        shows only its badge; a profile without an email a placeholder.
        """
        label_suffix = self._label_suffix(label)
        if (
            email is not None
            and plan is not None
            and email.lower() == "key"
            and plan.lower() == "key"
        ):
            return f"{self._plan_badge('Key')}{label_suffix}"
        if email is None:
            return messages.UI_UNKNOWN_PROFILE.format(label_suffix)
        badge = self._plan_badge(plan or "Unknown")
        if self.use_color:
            email_style = "white on green" if is_current else "white on magenta"
            return f"{badge}{self.style(f' {email} ', email_style)}{label_suffix}"
        return f"{badge} {email}{label_suffix}"

    def format_entry_header(self, display: str) -> str:
        if self.use_color:
            return f"[bold]{display}[/]"
        return display


def indent_output(message: str) -> str:
    return "\n".join(
        f"{OUTPUT_INDENT}{line}" if line.strip() else "" for line in message.split("\n")
    )


# =============================================================================
# ENTRIES
# =============================================================================


@dataclass
class Entry:
    """One rendered profile: a header plus optional detail lines."""

    display: str
    details: List[str] = field(default_factory=list)
    error_summary: Optional[str] = None
    always_show_details: bool = False


def push_separator(lines: List[str], display: DisplayConfig, allow_plain_spacing: bool) -> None:
    if not display.plain or allow_plain_spacing:
        lines.append("")


def render_entries(
    entries: List[Entry],
    display: DisplayConfig,
    show_usage: bool,
    allow_plain_spacing: bool = False,
) -> List[str]:
    lines: List[str] = []
    for idx, entry in enumerate(entries):
        header = display.format_entry_header(entry.display)
        if show_usage or entry.always_show_details:
            lines.append(header)
            lines.extend(entry.details)
        elif entry.error_summary is not None:
            lines.append(f"{header}  {display.text(entry.error_summary)}")
        else:
            lines.append(header)
        if idx + 1 < len(entries):
            push_separator(lines, display, allow_plain_spacing)
    return lines
