"""Formatting utilities for yen amounts and percentages."""

from __future__ import annotations

from typing import Union


def format_currency(amount: Union[float, int], include_sign: bool = True) -> str:
    """Format a yen amount with thousands separators and no decimals.

    Args:
        amount: The amount to format
        include_sign: Whether to include the yen sign

    Returns:
        Formatted currency string (e.g., "¥1,235" or "1,235")

    Example:
        >>> format_currency(1234.56)
        '¥1,235'
        >>> format_currency(-5000)
        '-¥5,000'
    """
    formatted = f"{abs(amount):,.0f}"
    if include_sign:
        formatted = f"¥{formatted}"
    return f"-{formatted}" if round(amount) < 0 else formatted


def format_signed_currency(amount: Union[float, int]) -> str:
    """Like :func:`format_currency` but always shows ``+`` for gains."""
    text = format_currency(amount)
    return text if text.startswith('-') or round(amount) == 0 else f"+{text}"


def format_percent(value: Union[float, int], digits: int = 1) -> str:
    return f"{value:.{digits}f}%"
