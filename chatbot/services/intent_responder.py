# chatbot/services/intent_responder.py
"""Keyword intent table and reply selection.

Matching is plain substring containment on the lowercased, trimmed text:
a rule matches when any of its keywords occurs anywhere in it. The highest
priority match wins; equal priorities keep table order. Text that matches
nothing gets a random canned fallback.
"""
from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple, Union

Response = Union[str, Callable[[], str]]


@dataclass(frozen=True)
class IntentRule:
    keywords: Tuple[str, ...]
    response: Response
    priority: int

    def __post_init__(self) -> None:
        if not self.keywords:
            raise ValueError("intent rule needs at least one keyword")
        if any(not k for k in self.keywords):
            raise ValueError(f"empty keyword in intent rule {self.keywords!r}")

    def matches(self, cleaned: str) -> bool:
        return any(k in cleaned for k in self.keywords)

    def render(self) -> str:
        return self.response() if callable(self.response) else self.response


def _current_time() -> str:
    now = datetime.now()
    return f"The current time is {now.strftime('%I:%M:%S %p').lstrip('0')}."


def _current_date() -> str:
    today = datetime.now()
    return f"Today's date is {today.month}/{today.day}/{today.year}."


def _rule(keywords: Sequence[str], response: Response, priority: int) -> IntentRule:
    return IntentRule(tuple(keywords), response, priority)


# Order matters: it breaks ties between rules of equal priority.
INTENTS: Tuple[IntentRule, ...] = (
    _rule(["automate", "outbound", "all-in-one", "ai-first platform"],
          "I can help you in automating your outbound an All-In-One, AI-First Platform powered by AI Employees", 4),
    _rule(["sales", "marketing", "customer-success"],
          "I can do help you in Sales, Marketing & Customer success", 4),
    _rule(["artisan"],
          "Artisan is a tech startup building future of software with AI emplooyees called Artisan", 4),
    _rule(["gtm ", "artisan", "outbound"],
          "Artisan is replacing, optimizing, and automating the entire GTM stack with AI and world-class software products", 4),
    _rule(["analytics", "artisan", "sales"],
          "Artisan AI employees can do sales and share the outbound analytics", 3),
    # mixed-case keywords are compared literally and so never hit lowercased text
    _rule(["AI", "BDR", "Ava"],
          "Ava is the first Artisan. She is our AI BDR?", 3),
    _rule(["leads", "find"],
          "Yes, I can also find leads. I identifies leads that match your targeting criteria with her "
          "international B2B database that has over 300M contacts in over 200 countries.", 3),
    _rule(["leads", "researches"],
          "Yes, I can also researches leads. I scrapes the web and her database for relevant intent signals, "
          "such as fundraising announcements, Google searches, and hiring news.", 3),
    _rule(["email", "write"],
          "Yes, I Ghostwrites Hyper-Personalized Emails.", 3),
    _rule(["schedule", "call", "meeting"],
          "I can help you schedule a call. What date and time do you prefer?", 3),
    _rule(["help", "support", "assist"],
          "Sure! I can help with FAQs, troubleshooting, or general inquiries.", 2),
    _rule(["hello", "hi", "hey"],
          "Hello! How can I assist you today?", 1),
    _rule(["bye", "goodbye"],
          "Goodbye! Feel free to reach out anytime.", 1),
    _rule(["thanks", "great"],
          "Thanks! Let me know in case I can help you.", 1),
    _rule(["weather"],
          "I can't provide live weather updates, but you can check Weather.com!", 1),
    _rule(["time"], _current_time, 1),
    _rule(["date"], _current_date, 1),
    _rule(["joke"],
          "Why did the scarecrow win an award? Because he was outstanding in his field!", 1),
)

FALLBACK_RESPONSES: Tuple[str, ...] = (
    "I'm not sure I understand. Could you rephrase that?",
    "That's interesting! Tell me more.",
    "I don't have an answer for that yet, but I'm learning!",
    "Can you clarify your question? I'd love to help.",
)


def normalize(text: Optional[str]) -> str:
    return (text or "").lower().strip()


def match_intents(text: Optional[str], rules: Sequence[IntentRule] = INTENTS) -> List[IntentRule]:
    """All rules whose keywords occur in `text`, in table order."""
    cleaned = normalize(text)
    if not cleaned:
        return []
    return [r for r in rules if r.matches(cleaned)]


def respond(
    user_text: Optional[str],
    *,
    rules: Sequence[IntentRule] = INTENTS,
    fallbacks: Sequence[str] = FALLBACK_RESPONSES,
    rng: Optional[random.Random] = None,
) -> str:
    """Reply for `user_text`. Never raises."""
    matched = match_intents(user_text, rules)
    logging.debug(json.dumps({
        "event": "intent.match",
        "matched": [{"keywords": list(r.keywords), "priority": r.priority} for r in matched],
    }))
    if matched:
        # sorted() is stable, so the first rule at the top priority wins
        best = sorted(matched, key=lambda r: r.priority, reverse=True)[0]
        return best.render()
    return (rng or random).choice(list(fallbacks))
