# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/codex_profiles/selection.py
"""
Candidate building and profile selection, by label or interactively.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.text import Text

from . import messages
from .auth import extract_email_and_plan
from .config import command_name
from .display import DisplayConfig
from .errors import PromptCancelled, SelectionError
from .hints import list_hint, save_before_load_hint
from .store import Labels, Snapshot, labels_by_id, trim_label


@dataclass(frozen=True)
class Candidate:
    id: str
    display: str


def build_candidates(
    ordered: Sequence[str],
    snapshot: Snapshot,
    current_id: Optional[str],
    display: DisplayConfig,
) -> List[Candidate]:
    """
    One candidate per id, in the given order. Unreadable profiles fall back
    to the email and plan cached in the index.
    """
    by_id = labels_by_id(snapshot.labels)
    candidates = []
    for profile_id in ordered:
        credential = snapshot.credential(profile_id)
        if credential is not None:
            email, plan = extract_email_and_plan(credential)
        else:
            entry = snapshot.index.profiles.get(profile_id)
            email = entry.email if entry else None
            plan = entry.plan if entry else None
        candidates.append(
            Candidate(
                id=profile_id,
                display=display.format_profile_display(
                    email, plan, by_id.get(profile_id), current_id == profile_id
                ),
            )
        )
    return candidates


def select_by_label(label: str, labels: Labels, candidates: Sequence[Candidate]) -> Candidate:
    trimmed = trim_label(label)
    profile_id = labels.get(trimmed)
    if profile_id is None:
        raise SelectionError(messages.PROFILE_ERR_LABEL_NOT_FOUND.format(trimmed, list_hint()))
    for candidate in candidates:
        if candidate.id == profile_id:
            return candidate
    raise SelectionError(messages.PROFILE_ERR_LABEL_NO_MATCH.format(trimmed, list_hint()))


# =============================================================================
# INTERACTIVE PROMPTS
# =============================================================================


class Prompter:
    """
    Interactive layer on top of rich prompts. Prompts render on stderr so
    stdout stays clean for command output.

    Ctrl+C or end-of-input during any prompt raises PromptCancelled.
    """

    def __init__(self, display: Optional[DisplayConfig] = None, console: Optional[Console] = None):
        self.display = display or DisplayConfig()
        self.console = console or Console(stderr=True, highlight=False)

    def is_interactive(self) -> bool:
        return sys.stdin.isatty() and sys.stderr.isatty()

    def _text(self, text: str) -> Text:
        # Profile displays carry markup only when colour is on
        if self.display.use_color:
            return Text.from_markup(text)
        return Text(text)

    def _print_choices(self, items: Sequence[str]) -> None:
        for i, item in enumerate(items, 1):
            self.console.print(Text(f"  {i}. ") + self._text(item))

    def select_one(self, title: str, items: Sequence[str]) -> int:
        """Return the zero-based index of the chosen item."""
        self.console.print(f"\n[bold]{title}[/bold]")
        self._print_choices(items)
        choices = [str(i) for i in range(1, len(items) + 1)]
        try:
            answer = Prompt.ask("Enter number", choices=choices, console=self.console)
        except (KeyboardInterrupt, EOFError) as e:
            raise PromptCancelled() from e
        return int(answer) - 1

    def select_many(self, title: str, items: Sequence[str]) -> List[int]:
        """
        Return zero-based indices for a comma/space separated list of
        numbers. Empty input selects nothing.
        """
        self.console.print(f"\n[bold]{title}[/bold]")
        self._print_choices(items)
        while True:
            try:
                answer = Prompt.ask("Enter numbers", default="", console=self.console)
            except (KeyboardInterrupt, EOFError) as e:
                raise PromptCancelled() from e
            parts = [p for p in re.split(r"[,\s]+", answer.strip()) if p]
            try:
                picked = sorted({int(p) for p in parts})
            except ValueError:
                self.console.print("[red]Enter numbers separated by commas or spaces.[/red]")
                continue
            if any(n < 1 or n > len(items) for n in picked):
                self.console.print(f"[red]Choose numbers between 1 and {len(items)}.[/red]")
                continue
            return [n - 1 for n in picked]

    def confirm(self, question: str) -> bool:
        try:
            return Confirm.ask(self._text(question), default=False, console=self.console)
        except (KeyboardInterrupt, EOFError) as e:
            raise PromptCancelled() from e


def require_tty(action: str, prompter: Prompter) -> None:
    if not prompter.is_interactive():
        raise SelectionError(
            messages.PROFILE_ERR_TTY_REQUIRED.format(action.capitalize(), command_name(), action)
        )


def pick_one(
    action: str,
    label: Optional[str],
    snapshot: Snapshot,
    candidates: Sequence[Candidate],
    prompter: Prompter,
) -> Candidate:
    """
    Resolve a single candidate by label, or ask for one.

    Raises:
        SelectionError: Unknown label, or no terminal for the prompt
        PromptCancelled: The user backed out
    """
    if label is not None:
        return select_by_label(label, snapshot.labels, candidates)
    require_tty(action, prompter)
    index = prompter.select_one(messages.PROFILE_PROMPT_PICK_ONE, [c.display for c in candidates])
    return candidates[index]


def pick_many(
    action: str,
    label: Optional[str],
    snapshot: Snapshot,
    candidates: Sequence[Candidate],
    prompter: Prompter,
) -> List[Candidate]:
    """
    Resolve one candidate by label, or ask for any number of them.

    Raises:
        SelectionError: Unknown label, or no terminal for the prompt
        PromptCancelled: The user backed out or selected nothing
    """
    if label is not None:
        return [select_by_label(label, snapshot.labels, candidates)]
    require_tty(action, prompter)
    indices = prompter.select_many(
        messages.PROFILE_PROMPT_PICK_MANY, [c.display for c in candidates]
    )
    if not indices:
        raise PromptCancelled()
    return [candidates[i] for i in indices]


def confirm_delete(displays: Sequence[str], prompter: Prompter) -> bool:
    """
    Ask before deleting. False means the user declined.

    Raises:
        SelectionError: No terminal to ask on
    """
    if not prompter.is_interactive():
        raise SelectionError(messages.PROFILE_ERR_DELETE_CONFIRM_REQUIRED)
    if len(displays) == 1:
        question = messages.PROFILE_PROMPT_DELETE_ONE.format(displays[0])
    else:
        question = messages.PROFILE_PROMPT_DELETE_MANY.format(len(displays))
    return prompter.confirm(question)


# =============================================================================
# UNSAVED PROFILE
# =============================================================================


class LoadChoice(Enum):
    SAVE_AND_CONTINUE = "save"
    CONTINUE_WITHOUT_SAVING = "continue"
    CANCEL = "cancel"


def prompt_unsaved_load(
    auth_path: Path, reason: str, prompter: Prompter, display: DisplayConfig
) -> LoadChoice:
    """
    Ask what to do with a live credential that has no saved copy before a
    load overwrites it.

    Raises:
        SelectionError: No terminal to ask on
    """
    if not prompter.is_interactive():
        raise SelectionError(
            messages.PROFILE_ERR_CURRENT_NOT_SAVED.format(save_before_load_hint(auth_path))
        )
    display.warn(messages.PROFILE_WARN_CURRENT_NOT_SAVED_REASON.format(reason))
    choices = [
        (LoadChoice.SAVE_AND_CONTINUE, messages.PROFILE_PROMPT_SAVE_AND_CONTINUE),
        (LoadChoice.CONTINUE_WITHOUT_SAVING, messages.PROFILE_PROMPT_CONTINUE_WITHOUT_SAVING),
        (LoadChoice.CANCEL, messages.PROFILE_PROMPT_CANCEL),
    ]
    try:
        index = prompter.select_one(
            messages.PROFILE_PROMPT_UNSAVED_TITLE, [text for _, text in choices]
        )
    except PromptCancelled:
        return LoadChoice.CANCEL
    return choices[index][0]
