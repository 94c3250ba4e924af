"""Interactive prompts backing the submission pipeline's operator decisions."""

from __future__ import annotations

from typing import Callable, Optional

from .fees import format_display, format_fee_table
from .model import FeeBreakdown, TransferRequest

InputFunc = Callable[[str], str]


def prompt_str(prompt: str, default: str | None = None, *, input_func: InputFunc = input) -> str:
    """Prompt for a string value, honoring an optional default."""

    suffix = f" [{default}]" if default is not None else ""
    while True:
        raw = input_func(f"{prompt}{suffix}: ").strip()
        if raw:
            return raw
        if default is not None:
            return default
        print("Please enter a value or provide a default.")


def prompt_yes_no(prompt: str, *, input_func: InputFunc = input) -> bool:
    """Return ``True`` only for an explicit yes."""

    return input_func(f"{prompt} (yes/no): ").strip().lower() in {"y", "yes"}


def prompt_amount(prompt: str, upper_bound: int, *, input_func: InputFunc = input) -> int | None:
    """Prompt for a nanoton amount strictly below ``upper_bound``; blank cancels."""

    while True:
        raw = input_func(f"{prompt}: ").strip()
        if not raw:
            return None
        try:
            value = int(raw)
        except ValueError:
            print("Invalid integer, please try again.")
            continue
        if 0 < value < upper_bound:
            return value
        print(f"Amount must be between 1 and {upper_bound - 1} nanotons.")


class ConsoleOperator:
    """Operator that asks the person at the terminal."""

    def __init__(self, *, assume_yes: bool = False, input_func: InputFunc = input) -> None:
        self.assume_yes = assume_yes
        self._input = input_func

    def choose_smaller_amount(self, request: TransferRequest, balance: int) -> Optional[int]:
        print(
            f"Insufficient balance: {format_display(balance)} TON available, "
            f"{format_display(request.amount)} TON requested."
        )
        if not prompt_yes_no(
            "Do you want to try with a smaller amount?", input_func=self._input
        ):
            print("Transaction cancelled by user.")
            return None
        return prompt_amount(
            "Please enter a smaller amount in nanotons", request.amount, input_func=self._input
        )

    def confirm_fee(self, request: TransferRequest, fee: FeeBreakdown) -> bool:
        print(format_fee_table(fee))
        if self.assume_yes:
            return True
        confirmed = prompt_yes_no(
            f"Estimated fee: {format_display(fee.total)} TON. Do you want to proceed?",
            input_func=self._input,
        )
        if not confirmed:
            print("Transaction cancelled by user.")
        return confirmed
