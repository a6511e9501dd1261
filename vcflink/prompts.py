"""Interactive prompts used when credentials must be entered by an operator."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from pydantic import SecretStr
from rich.console import Console
from rich.prompt import Confirm, Prompt

from .errors import PromptUnavailableError
from .models import EndpointCredentials, EndpointKind
from .validation import is_valid_address


@runtime_checkable
class Prompter(Protocol):
    """Source of operator input."""

    interactive: bool

    def ask(self, label: str, *, default: str | None = None, secret: bool = False) -> str:
        """Return a line of input."""

    def confirm(self, question: str, *, default: bool = False) -> bool:
        """Return a yes/no answer."""

    def choose(self, question: str, choices: Sequence[str], *, default: str) -> str:
        """Return one of `choices`."""


class RichPrompter:
    """Prompter backed by `rich.prompt`."""

    interactive = True

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def ask(self, label: str, *, default: str | None = None, secret: bool = False) -> str:
        if default is None:
            return Prompt.ask(label, console=self._console, password=secret)
        return Prompt.ask(label, console=self._console, password=secret, default=default)

    def confirm(self, question: str, *, default: bool = False) -> bool:
        return Confirm.ask(question, console=self._console, default=default)

    def choose(self, question: str, choices: Sequence[str], *, default: str) -> str:
        return Prompt.ask(question, console=self._console, choices=list(choices), default=default)


class NonInteractivePrompter:
    """Prompter for headless runs; every request fails."""

    interactive = False

    def ask(self, label: str, *, default: str | None = None, secret: bool = False) -> str:
        raise PromptUnavailableError(f"Cannot prompt for '{label}' in non-interactive mode")

    def confirm(self, question: str, *, default: bool = False) -> bool:
        raise PromptUnavailableError(f"Cannot ask '{question}' in non-interactive mode")

    def choose(self, question: str, choices: Sequence[str], *, default: str) -> str:
        raise PromptUnavailableError(f"Cannot ask '{question}' in non-interactive mode")


def prompt_credentials(
    prompter: Prompter,
    kind: EndpointKind,
    *,
    default_address: str | None = None,
    default_username: str | None = None,
) -> EndpointCredentials:
    """Ask for address, username and secret until each is non-empty."""

    address = ""
    while not is_valid_address(address):
        address = prompt_until_filled(prompter, f"{kind.label} FQDN or IP address", default=default_address)
    username = prompt_until_filled(prompter, f"{kind.label} username", default=default_username)
    secret = prompt_until_filled(prompter, f"{kind.label} password", secret=True)
    return EndpointCredentials(address=address, username=username, secret=SecretStr(secret))


def prompt_until_filled(
    prompter: Prompter,
    label: str,
    *,
    default: str | None = None,
    secret: bool = False,
) -> str:
    value = ""
    while not value.strip():
        value = prompter.ask(label, default=default, secret=secret)
    return value.strip()


__all__ = [
    "NonInteractivePrompter",
    "Prompter",
    "RichPrompter",
    "prompt_credentials",
    "prompt_until_filled",
]
