"""
Rule-based intent pre-classifier.

This module defines:
- `IntentType`: canonical intent names.
- `Backend`: Oracle backend selectors.
- `classify_intent()`: pure function mapping a task string to an `Intent`.

Rules are ordered phrase matches over the lower-cased task and the first match
wins. The result only biases the agent (backend choice and a first-tool hint);
the model remains free to pick any tool.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class IntentType:
    TASK: str = "task"
    DOMAIN: str = "domain"
    CULTURAL: str = "cultural"
    CODING: str = "coding"
    NEWS: str = "news"
    GENERAL: str = "general"
    UNKNOWN: str = "unknown"


@dataclass(frozen=True)
class Backend:
    DEFAULT: str = "default"
    SPECIALIZED: str = "specialized"


@dataclass(frozen=True, slots=True)
class Intent:
    """Routing hint for one request. Never persisted."""

    type: str
    backend: str = Backend.DEFAULT
    tool: Optional[str] = None


META_TERMS = (
    "list tools",
    "what tools",
    "available tools",
    "show tools",
    "what can you do",
    "capabilities",
    "help me",
)

RECURRING_TERMS = (
    "every day",
    "every morning",
    "every hour",
    "every evening",
    "every week",
    "daily",
    "weekly",
    "hourly",
    "schedule",
    "recurring",
    "automate",
    "automation",
)

REMINDER_TERMS = (
    "remind me",
    "alert me",
    "notify me",
    "send me",
    "email me",
    "tell me when",
    "let me know when",
)

FLOW_LIST_TERMS = ("my flows", "list flows", "show flows", "automations", "my reminders")

MANAGE_TERMS = ("track", "log", "record", "calculate", "manage", "organize", "list my", "keep track")
NOTIFY_WORDS = ("remind", "alert", "notify", "send me")

BUILD_VERBS = ("build", "create", "make", "develop", "code")
ARTIFACT_NOUNS = ("app", "application", "website", "tool", "program", "page")

DOMAIN_TERMS = (
    "quran", "qur'an", "ayah", "ayat", "surah", "sura",
    "hadith", "hadīth", "sunnah", "sunna",
    "islam", "islamic", "muslim", "muslims",
    "allah", "prophet", "muhammad", "pbuh",
    "sharia", "shariah", "shari'a",
    "halal", "haram",
    "prayer", "salah", "salat", "fasting", "sawm", "ramadan",
    "zakat", "zakah", "hajj", "pilgrimage",
    "wudu", "ablution", "ghusl",
    "imam", "mosque", "masjid",
    "dua", "du'a", "supplication",
    "jannah", "jahannam", "paradise", "hellfire",
    "permissible", "forbidden",
    "angels", "jinn", "shaytan", "satan",
)

CULTURAL_TERMS = (
    "arabic", "arab", "عربي", "العربية",
    "middle east", "gulf", "qatar", "saudi", "uae", "egypt",
    "eid", "عيد", "ramadan", "رمضان",
)

NEWS_NOUNS = ("news", "headlines", "article", "articles", "latest", "today's")
NEWS_VERBS = ("search", "find", "show", "get", "what's", "whats")

VIDEO_TERMS = ("video", "videos", "watch", "play", "youtube")
MAIL_TERMS = ("email", "mail", "send", "inbox", "message")
NOTE_TERMS = ("note", "notes", "save", "remember", "write down")
MARKET_TERMS = ("price", "prices", "bitcoin", "btc", "eth", "crypto", "stock", "market", "gold")
WALLET_TERMS = ("balance", "credits", "wallet", "how much", "funds")

QUESTION_PHRASES = (
    "what is", "what are", "who is", "who are", "why", "how does", "explain", "tell me about",
)
TASK_NOUNS = ("app", "video", "news", "email", "note", "price")


def _contains(text: str, needles: Sequence[str]) -> bool:
    return any(term in text for term in needles)


def classify_intent(task: str) -> Intent:
    """
    Classify a task string into an `Intent`.

    Total and side-effect free: any input, including an empty string,
    yields an Intent.
    """
    lowered = (task or "").lower()

    if _contains(lowered, META_TERMS):
        return Intent(IntentType.TASK, tool="tools.list")

    # Recurring before one-shot: "remind me every morning" is an automation.
    if _contains(lowered, RECURRING_TERMS):
        return Intent(IntentType.TASK, tool="flow.create")
    if _contains(lowered, REMINDER_TERMS):
        return Intent(IntentType.TASK, tool="reminder.create")
    if _contains(lowered, FLOW_LIST_TERMS):
        return Intent(IntentType.TASK, tool="flow.list")

    if _contains(lowered, MANAGE_TERMS) and not _contains(lowered, NOTIFY_WORDS):
        return Intent(IntentType.CODING, tool="apps.create")
    if _contains(lowered, BUILD_VERBS) and _contains(lowered, ARTIFACT_NOUNS):
        return Intent(IntentType.CODING, tool="apps.create")

    if _contains(lowered, DOMAIN_TERMS):
        return Intent(IntentType.DOMAIN, backend=Backend.SPECIALIZED, tool="reminder.today")
    if _contains(lowered, CULTURAL_TERMS):
        return Intent(IntentType.CULTURAL, backend=Backend.SPECIALIZED)

    if _contains(lowered, NEWS_NOUNS) and _contains(lowered, NEWS_VERBS):
        return Intent(IntentType.NEWS, tool="news.search")
    if _contains(lowered, VIDEO_TERMS):
        return Intent(IntentType.TASK, tool="video.search")
    if _contains(lowered, MAIL_TERMS):
        return Intent(IntentType.TASK, tool="mail.send")
    if _contains(lowered, NOTE_TERMS):
        return Intent(IntentType.TASK, tool="notes.create")
    if _contains(lowered, MARKET_TERMS):
        return Intent(IntentType.TASK, tool="markets.get_price")
    if _contains(lowered, WALLET_TERMS):
        return Intent(IntentType.TASK, tool="wallet.balance")

    if _contains(lowered, QUESTION_PHRASES) and not _contains(lowered, TASK_NOUNS):
        return Intent(IntentType.GENERAL)

    return Intent(IntentType.UNKNOWN)
