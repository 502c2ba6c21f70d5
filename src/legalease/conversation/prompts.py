"""Preambles, fixed replies and generation parameters for each conversation branch."""

from typing import Sequence

from ..knowledge import IssueCategory
from ..services.generation import GenerationParams

INTAKE_PARAMS = GenerationParams(max_tokens=200)
SUMMARY_PARAMS = GenerationParams(max_tokens=300)
CASE_HISTORY_PARAMS = GenerationParams(max_tokens=400)
CONTINUATION_PARAMS = GenerationParams(max_tokens=250)

DETAIL_FOLLOW_UP = "Could you please tell me more about the incident in detail?"
CASE_HISTORY_OFFER = "Would you like to know about previous similar cases and their outcomes?"
CASE_HISTORY_DECLINED = (
    "Alright, we can continue discussing your situation or any other queries you have."
)

AFFIRMATIVE_TOKENS = ("yes",)


def is_affirmative(message: str) -> bool:
    # Plain substring test: "no, yes I do" counts as a yes.
    text = message.lower()
    return any(token in text for token in AFFIRMATIVE_TOKENS)


def _label(category: IssueCategory) -> str:
    return category.value.upper()


def intake_preamble(assistant_name: str, category: IssueCategory) -> str:
    return (
        f"You are {assistant_name}, empathetic legal assistant.\n"
        f"The user has sent their first message regarding {_label(category)}.\n"
        "Analyze their message and respond naturally with empathy.\n"
        "Ask for clarification or confirmation if needed before proceeding "
        "to incident details.\n"
    )


def summary_preamble(
    assistant_name: str, category: IssueCategory, details: Sequence[str]
) -> str:
    return (
        f"You are {assistant_name}, a professional legal assistant.\n"
        f"The user reported an incident about {_label(category)} with the "
        f"following details: {' '.join(details)}\n"
        "Now provide a clear, simple-language summary:\n"
        "- Explain the relevant laws in simple terms.\n"
        "- Give step-by-step guidance tailored to this incident.\n"
        "- Keep the tone empathetic and supportive.\n"
    )


def case_history_preamble(category: IssueCategory) -> str:
    return (
        "The user wants to know about 2-3 previous legal cases similar to "
        f"{_label(category)}.\n"
        "Provide for each:\n"
        "- Case Title\n"
        "- Short Background\n"
        "- Outcome\n"
        "- How it relates to the user's situation\n"
        "Use simple language and make it understandable.\n"
        "Include real Indian cases if available; otherwise create realistic examples.\n"
    )


def continuation_preamble(assistant_name: str, category: IssueCategory) -> str:
    return (
        f"You are {assistant_name}, empathetic legal assistant.\n"
        f"The user already shared the incident about {_label(category)}.\n"
        "Continue responding naturally and provide additional legal guidance if needed.\n"
    )
