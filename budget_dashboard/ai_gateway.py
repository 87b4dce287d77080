"""AI features with deterministic local fallbacks.

Every operation here asks the hosted LLM first when an OpenAI API key is
configured.  When no key is set, the request fails, or the reply cannot
be turned into a non-empty result, a rule-based answer computed locally
is returned instead, so callers always get a usable value.

Operations:

* :func:`generate_advice` - up to three budgeting tips from a spending summary
* :func:`generate_challenges` - an easy, a medium and a hard savings challenge
* :func:`parse_expense_text` - expenses extracted from free text
* :func:`parse_receipt` - an expense read from a receipt photo
* :func:`chat_reply` - an answer to a question about the user's finances

The ``build_*`` helpers derive the request payloads from categories and
transactions.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from openai import OpenAI, OpenAIError

from . import config
from .formatting import format_currency
from .models import (
    UNCATEGORIZED,
    BudgetSummary,
    Category,
    Number,
    Transaction,
    to_number,
)
from .settings import get_config_value

logger = logging.getLogger(__name__)

DEFAULT_INCOME = 300000
CHAT_HISTORY_LIMIT = 6
DIFFICULTIES = ('easy', 'medium', 'hard')

_OBJECT_RE = re.compile(r'\{[\s\S]*\}')
_ARRAY_RE = re.compile(r'\[[\s\S]*\]')
_AMOUNT_PATTERNS = (
    re.compile(r'(\d{1,3}(?:,\d{3})*|\d+)円'),
    re.compile(r'[¥￥](\d{1,3}(?:,\d{3})*|\d+)'),
    re.compile(r'(\d{1,3}(?:,\d{3})*|\d+)\s*yen\b', re.IGNORECASE),
)


def _mentions(keyword: str, text: str) -> bool:
    """Whole-word match, so "bus" does not hit "business"."""
    return re.search(rf'\b{re.escape(keyword)}\b', text) is not None


class GatewayInputError(ValueError):
    """Raised when an AI request is missing its required input."""


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdviceSummary:
    total_income: Number
    total_expense: Number
    category_breakdown: List[Dict[str, Any]]  # name, amount, percentage
    top_expense_categories: List[str]
    savings_rate: float


@dataclass(frozen=True)
class SpendingData:
    top_categories: List[Dict[str, Any]]  # name, amount
    total_expense: Number
    savings_rate: float


@dataclass(frozen=True)
class ChatContext:
    total_income: Number
    total_expense: Number
    savings: Number
    category_breakdown: List[Dict[str, Any]] = field(default_factory=list)  # name, amount


@dataclass(frozen=True)
class Challenge:
    title: str
    description: str
    target: str
    difficulty: str  # 'easy' | 'medium' | 'hard'

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class ParsedExpense:
    amount: Number
    category: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _expense_by_category(
    categories: Sequence[Category],
    transactions: Sequence[Transaction],
) -> List[Dict[str, Any]]:
    names = {c.id: c.name for c in categories}
    totals: Dict[str, Number] = {}
    for txn in transactions:
        if not txn.is_expense:
            continue
        name = names.get(txn.category_id, UNCATEGORIZED) if txn.category_id else UNCATEGORIZED
        totals[name] = totals.get(name, 0) + txn.amount
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [{'name': name, 'amount': amount} for name, amount in ranked]


def _savings_rate(income: Number, expense: Number) -> float:
    return (income - expense) / income * 100 if income > 0 else 0.0


def build_advice_summary(
    income: Number,
    categories: Sequence[Category],
    transactions: Sequence[Transaction],
) -> AdviceSummary:
    """Summarise a period's spending for :func:`generate_advice`."""
    breakdown = _expense_by_category(categories, transactions)
    total_expense = sum((row['amount'] for row in breakdown), 0)
    for row in breakdown:
        row['percentage'] = row['amount'] / total_expense * 100 if total_expense > 0 else 0.0
    return AdviceSummary(
        total_income=income,
        total_expense=total_expense,
        category_breakdown=breakdown,
        top_expense_categories=[row['name'] for row in breakdown[:3]],
        savings_rate=_savings_rate(income, total_expense),
    )


def build_spending_data(
    categories: Sequence[Category],
    transactions: Sequence[Transaction],
    default_income: Optional[Number] = None,
) -> SpendingData:
    """Summarise spending for :func:`generate_challenges`.

    Income falls back to ``default_income`` when no income was recorded.
    """
    if default_income is None:
        default_income = get_config_value('budget', 'challenges', 'default_income', default=DEFAULT_INCOME)
    breakdown = _expense_by_category(categories, transactions)
    total_expense = sum((row['amount'] for row in breakdown), 0)
    income = sum((t.amount for t in transactions if t.is_income), 0) or default_income
    return SpendingData(
        top_categories=breakdown[:3],
        total_expense=total_expense,
        savings_rate=_savings_rate(income, total_expense),
    )


def build_chat_context(
    summary: BudgetSummary,
    categories: Sequence[Category],
    transactions: Sequence[Transaction],
) -> ChatContext:
    breakdown = _expense_by_category(categories, transactions)
    total_expense = sum((row['amount'] for row in breakdown), 0)
    return ChatContext(
        total_income=summary.total_income,
        total_expense=total_expense,
        savings=summary.total_income - total_expense,
        category_breakdown=breakdown,
    )


# ---------------------------------------------------------------------------
# Hosted model plumbing
# ---------------------------------------------------------------------------


def _client() -> Optional[OpenAI]:
    api_key = config.get_openai_api_key()
    if not api_key:
        return None
    return OpenAI(api_key=api_key, timeout=config.AI_TIMEOUT_SECONDS)


def _complete(
    messages: List[Dict[str, Any]],
    *,
    temperature: float,
    max_tokens: int,
    model: Optional[str] = None,
) -> Optional[str]:
    """Run a chat completion. ``None`` means the hosted model is unavailable."""
    client = _client()
    if client is None:
        return None
    try:
        response = client.chat.completions.create(
            model=model or config.AI_MODEL,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except OpenAIError as e:
        logger.warning("OpenAI request failed: %s", e)
        return None
    if not response.choices:
        return None
    return response.choices[0].message.content


def _extract_json(content: Optional[str], pattern: re.Pattern) -> Any:
    if not content:
        return None
    match = pattern.search(content)
    if match is None:
        logger.error("No JSON found in AI reply: %r", content[:200])
        return None
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.error("Failed to parse AI reply: %r", content[:200])
        return None


def _to_parsed_expenses(items: Any) -> List[ParsedExpense]:
    results: List[ParsedExpense] = []
    if not isinstance(items, list):
        return results
    for item in items:
        if not isinstance(item, Mapping):
            continue
        amount = to_number(item.get('amount'), default=0)
        if amount <= 0:
            continue
        results.append(ParsedExpense(
            amount=amount,
            category=str(item.get('category') or ''),
            description=str(item.get('description') or ''),
        ))
    return results


# ---------------------------------------------------------------------------
# Advice
# ---------------------------------------------------------------------------


def _advice_prompt(summary: AdviceSummary) -> str:
    lines = [
        "You are a household budget advisor. Analyse the spending data below and give three "
        "specific, actionable tips.",
        "",
        "Data:",
        f"- Monthly income: {format_currency(summary.total_income)}",
        f"- Monthly spending: {format_currency(summary.total_expense)}",
        f"- Savings rate: {summary.savings_rate:.1f}%",
        f"- Top spending categories: {', '.join(summary.top_expense_categories)}",
        "- Breakdown by category:",
    ]
    for row in summary.category_breakdown:
        lines.append(f"  - {row['name']}: {format_currency(row['amount'])} ({row.get('percentage', 0):.1f}%)")
    lines += [
        "",
        "Requirements:",
        "- One or two sentences per tip",
        "- Include concrete amounts or percentages",
        "- Keep the tone positive",
        "",
        'Answer in JSON: {"advice": ["tip 1", "tip 2", "tip 3"]}',
    ]
    return "\n".join(lines)


def rule_based_advice(summary: AdviceSummary) -> List[str]:
    """Budget tips derived from savings rate, top category share and subscriptions."""
    low = get_config_value('budget', 'advice', 'low_savings_rate', default=10)
    high = get_config_value('budget', 'advice', 'high_savings_rate', default=20)
    dominant = get_config_value('budget', 'advice', 'dominant_category_percent', default=30)

    rate = summary.savings_rate
    advice: List[str] = []
    if rate < low:
        advice.append(
            f"Your savings rate is {rate:.1f}%, on the low side. "
            "Start by aiming to cut monthly spending by 5%."
        )
    elif rate >= high:
        advice.append(f"A savings rate of {rate:.1f}% is excellent. Keep it up!")
    else:
        advice.append(f"A savings rate of {rate:.1f}% is a good pace. Try aiming for {high}%.")

    if summary.top_expense_categories:
        top = summary.top_expense_categories[0]
        row = next((r for r in summary.category_breakdown if r['name'] == top), None)
        if row is not None and row.get('percentage', 0) > dominant:
            advice.append(
                f"{top} makes up {row['percentage']:.0f}% of your spending. "
                "There may be room to trim it."
            )

    if any('subscription' in str(r['name']).lower() for r in summary.category_breakdown):
        advice.append("Review your subscriptions regularly and cancel the ones you no longer use.")
    else:
        advice.append("Reviewing fixed costs often saves ¥5,000 or more a month.")

    return advice[:3]


def generate_advice(summary: Optional[AdviceSummary]) -> List[str]:
    """Return up to three budgeting tips for ``summary``.

    Raises:
        GatewayInputError: If ``summary`` is missing
    """
    if summary is None:
        raise GatewayInputError("A spending summary is required")

    content = _complete(
        [{'role': 'user', 'content': _advice_prompt(summary)}],
        temperature=0.7,
        max_tokens=500,
    )
    parsed = _extract_json(content, _OBJECT_RE)
    if isinstance(parsed, dict):
        advice = [str(a) for a in parsed.get('advice') or [] if str(a).strip()]
        if advice:
            return advice[:3]
    return rule_based_advice(summary)


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


def _challenge_prompt(data: SpendingData) -> str:
    top = ', '.join(f"{c['name']} ({format_currency(c['amount'])})" for c in data.top_categories)
    return "\n".join([
        "Suggest three savings challenges for this week based on the user's spending.",
        "",
        "Data:",
        f"- Monthly spending: {format_currency(data.total_expense)}",
        f"- Savings rate: {data.savings_rate:.1f}%",
        f"- Top spending categories: {top}",
        "",
        "Conditions:",
        "- Achievable, concrete goals",
        "- Exactly one each of easy, medium and hard",
        "",
        "Answer in JSON:",
        '{"challenges": [{"title": "...", "description": "...", "target": "...", "difficulty": "easy"}]}',
    ])


def default_challenges(data: SpendingData) -> List[Challenge]:
    """One easy, one medium and one hard challenge computed locally."""
    names = ' '.join(str(c['name']).lower() for c in data.top_categories)
    if 'food' in names or 'convenience' in names:
        easy = Challenge(
            title='Skip the convenience store',
            description='Cook at home or use the supermarket instead of the convenience store',
            target='At most 3 visits this week',
            difficulty='easy',
        )
    else:
        easy = Challenge(
            title='Bring your own bottle',
            description='Carry a water bottle every day and stop buying bottled drinks',
            target='5 days this week',
            difficulty='easy',
        )

    medium = Challenge(
        title='No eating out week',
        description='Skip restaurants this week and cook for yourself',
        target=f"Save {format_currency(3000)} this week",
        difficulty='medium',
    )

    ratio = get_config_value('budget', 'challenges', 'hard_cut_ratio', default=0.1)
    target_saving = round(data.total_expense * ratio)
    hard = Challenge(
        title=f"{ratio * 100:.0f}% savings challenge",
        description=f"Consciously cut your spending by {ratio * 100:.0f}%",
        target=f"Save {format_currency(target_saving)}",
        difficulty='hard',
    )
    return [easy, medium, hard]


def generate_challenges(data: Optional[SpendingData]) -> List[Challenge]:
    """Return savings challenges for ``data``.

    Raises:
        GatewayInputError: If ``data`` is missing
    """
    if data is None:
        raise GatewayInputError("Spending data is required")

    content = _complete(
        [{'role': 'user', 'content': _challenge_prompt(data)}],
        temperature=0.8,
        max_tokens=500,
    )
    parsed = _extract_json(content, _OBJECT_RE)
    if isinstance(parsed, dict):
        challenges = []
        for item in parsed.get('challenges') or []:
            if not isinstance(item, Mapping) or not item.get('title'):
                continue
            difficulty = str(item.get('difficulty') or 'medium').lower()
            challenges.append(Challenge(
                title=str(item['title']),
                description=str(item.get('description') or ''),
                target=str(item.get('target') or ''),
                difficulty=difficulty if difficulty in DIFFICULTIES else 'medium',
            ))
        if challenges:
            return challenges
    return default_challenges(data)


# ---------------------------------------------------------------------------
# Free-text expense parsing
# ---------------------------------------------------------------------------


def parse_locally(text: str) -> List[ParsedExpense]:
    """Extract yen amounts with regular expressions.

    Every amount in the text gets the category of the first keyword found
    in it, or the default category when there is none.
    """
    keywords: Dict[str, str] = get_config_value('budget', 'parser', 'keywords', default={}) or {}
    default_category = get_config_value('budget', 'parser', 'default_category', default='Food')

    lowered = text.lower()
    category, keyword_found = default_category, ''
    for keyword, mapped in keywords.items():
        if _mentions(keyword, lowered):
            category, keyword_found = mapped, keyword
            break

    results: List[ParsedExpense] = []
    for pattern in _AMOUNT_PATTERNS:
        for match in pattern.finditer(text):
            amount = int(match.group(1).replace(',', ''))
            description = keyword_found or f"{format_currency(amount)} expense"
            results.append(ParsedExpense(amount=amount, category=category, description=description))
    return results


def _parse_prompt(categories: Sequence[str]) -> str:
    return "\n".join([
        "You extract expenses from a user's spending note and return them as JSON.",
        "",
        f"Available categories: {', '.join(categories)}",
        "",
        'Return: [{"amount": number, "category": "category name", "description": "short description"}]',
        "",
        "Example:",
        'Input: "groceries 3000 yen and a coffee for 500 yen"',
        'Output: [{"amount": 3000, "category": "Food", "description": "groceries"}, '
        '{"amount": 500, "category": "Food", "description": "coffee"}]',
        "",
        "Notes:",
        "- amounts are numbers",
        "- pick the closest category from the available ones",
        "- return [] when nothing can be extracted",
    ])


def parse_expense_text(text: str, categories: Optional[Sequence[str]] = None) -> List[ParsedExpense]:
    """Extract expenses from free text such as ``"lunch 1,200円"``.

    Raises:
        GatewayInputError: If ``text`` is empty or not a string
    """
    if not isinstance(text, str) or not text.strip():
        raise GatewayInputError("Input text is required")
    if not categories:
        categories = get_config_value('budget', 'parser', 'categories', default=[]) or []

    content = _complete(
        [
            {'role': 'system', 'content': _parse_prompt(categories)},
            {'role': 'user', 'content': text},
        ],
        temperature=0.3,
        max_tokens=500,
    )
    results = _to_parsed_expenses(_extract_json(content, _ARRAY_RE))
    if results:
        return results
    return parse_locally(text)


# ---------------------------------------------------------------------------
# Receipts
# ---------------------------------------------------------------------------

_RECEIPT_PROMPT = """You read receipt photos. Extract the receipt and return JSON:

{
  "storeName": "store name",
  "date": "YYYY-MM-DD",
  "total": total amount as a number,
  "items": [{"name": "item name", "amount": amount, "quantity": count}]
}

Notes:
- total is a number without separators or currency signs
- use today's date if the date cannot be read
- return empty values when the receipt cannot be read"""


def categorize_receipt(store_name: str, items: Sequence[Mapping[str, Any]]) -> str:
    """Guess a category from the store name and item names."""
    search_text = ' '.join([store_name] + [str(i.get('name') or '') for i in items]).lower()
    keywords: Dict[str, List[str]] = get_config_value('budget', 'receipt', 'keywords', default={}) or {}
    for category, words in keywords.items():
        for word in words:
            if _mentions(word.lower(), search_text):
                return category
    return get_config_value('budget', 'parser', 'default_category', default='Food')


def _image_url(image_b64: str) -> str:
    if image_b64.startswith('data:'):
        return image_b64
    return f"data:image/jpeg;base64,{image_b64}"


def parse_receipt(image_b64: str, categories: Optional[Sequence[str]] = None) -> List[ParsedExpense]:
    """Read the store and total from a base64 receipt image.

    There is no offline image reader, so without the hosted model (or when
    the receipt cannot be read) the result is an empty list.

    Raises:
        GatewayInputError: If ``image_b64`` is empty or not a string
    """
    if not isinstance(image_b64, str) or not image_b64.strip():
        raise GatewayInputError("A receipt image is required")
    if not categories:
        categories = get_config_value('budget', 'receipt', 'default_categories', default=[]) or []

    content = _complete(
        [
            {'role': 'system', 'content': _RECEIPT_PROMPT},
            {
                'role': 'user',
                'content': [
                    {'type': 'text', 'text': 'Extract the information from this receipt.'},
                    {'type': 'image_url', 'image_url': {'url': _image_url(image_b64), 'detail': 'high'}},
                ],
            },
        ],
        temperature=0.2,
        max_tokens=1000,
        model=config.AI_VISION_MODEL,
    )
    if content is None:
        logger.info("Receipt scanning needs the hosted model; returning no results")
        return []

    parsed = _extract_json(content, _OBJECT_RE)
    if not isinstance(parsed, dict):
        return []
    total = to_number(parsed.get('total'), default=0)
    if total <= 0:
        return []

    store_name = str(parsed.get('storeName') or '')
    items = [i for i in parsed.get('items') or [] if isinstance(i, Mapping)]
    category = categorize_receipt(store_name, items)
    if category not in categories:
        category = categories[0] if categories else 'Food'
    return [ParsedExpense(amount=total, category=category, description=store_name or 'Receipt')]


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


def _chat_system_prompt(context: ChatContext) -> str:
    lines = [
        "You are a household budget assistant. Answer the user's questions about their finances kindly.",
        "",
        "The user's current finances:",
        f"- Monthly income: {format_currency(context.total_income)}",
        f"- Monthly spending: {format_currency(context.total_expense)}",
        f"- Savings: {format_currency(context.savings)}",
        "- Spending by category:",
    ]
    lines += [f"  - {c['name']}: {format_currency(c['amount'])}" for c in context.category_breakdown]
    lines += [
        "",
        "Rules:",
        "- Keep answers to two or three sentences",
        "- Use concrete numbers",
        "- Add a word of encouragement",
    ]
    return "\n".join(lines)


def fallback_reply(message: str, context: ChatContext) -> str:
    """Answer common questions from the context with keyword matching."""
    lowered = message.lower()
    if 'how much' in lowered and 'spen' in lowered:
        return f"You have spent {format_currency(context.total_expense)} this month."
    if 'saving' in lowered or 'saved' in lowered:
        return f"Your savings this month are {format_currency(context.savings)}."
    if 'income' in lowered:
        return f"Your income this month is {format_currency(context.total_income)}."
    if 'budget' in lowered or 'left' in lowered or 'remaining' in lowered:
        return f"You have {format_currency(context.savings)} of budget left this month."
    if context.category_breakdown:
        top = context.category_breakdown[0]
        return f"Your biggest spending category is \"{top['name']}\" at {format_currency(top['amount'])}."
    return (
        "Sorry, I didn't understand the question. Try asking "
        "\"How much did I spend this month?\" or \"How much have I saved?\""
    )


def chat_reply(
    message: str,
    context: Optional[ChatContext],
    history: Sequence[Mapping[str, str]] = (),
) -> str:
    """Answer ``message`` about the finances in ``context``.

    Only the most recent messages of ``history`` are sent to the model.

    Raises:
        GatewayInputError: If the message or the context is missing
    """
    if not isinstance(message, str) or not message.strip() or context is None:
        raise GatewayInputError("A message and a context are required")

    messages: List[Dict[str, Any]] = [{'role': 'system', 'content': _chat_system_prompt(context)}]
    for turn in list(history)[-CHAT_HISTORY_LIMIT:]:
        role = turn.get('role')
        if role in ('user', 'assistant'):
            messages.append({'role': role, 'content': str(turn.get('content') or '')})
    messages.append({'role': 'user', 'content': message})

    content = _complete(messages, temperature=0.7, max_tokens=300)
    if content and content.strip():
        return content.strip()
    return fallback_reply(message, context)
