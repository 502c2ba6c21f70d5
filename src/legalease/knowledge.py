"""Static legal reference data and keyword-based issue detection.

The classifier rules and the law table are both keyed by ``IssueCategory``;
a category added to one must be added to the other.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Pattern, Tuple


class IssueCategory(str, Enum):
    HARASSMENT = "harassment"
    DOMESTIC_VIOLENCE = "domestic_violence"
    THEFT = "theft"
    FRAUD = "fraud"
    CYBERCRIME = "cybercrime"
    GENERAL = "general"


DEFAULT_CATEGORY = IssueCategory.GENERAL

# Inflections accepted after a keyword ("stalked", "harassment", "beaten").
_SUFFIXES = r"(?:s|es|d|ed|en|er|ers|ing|ment|med|ming)?"


def _rule(category: IssueCategory, *keywords: str) -> Tuple[IssueCategory, Pattern[str]]:
    alternatives = "|".join(re.escape(k) for k in keywords)
    return category, re.compile(rf"\b(?:{alternatives}){_SUFFIXES}\b")


# Evaluated in order; the first match wins.
ISSUE_RULES: List[Tuple[IssueCategory, Pattern[str]]] = [
    _rule(IssueCategory.HARASSMENT, "harass", "abuse", "molest", "stalk", "eve-teasing"),
    _rule(IssueCategory.DOMESTIC_VIOLENCE, "husband", "wife", "home violence", "beat", "dowry", "in-laws"),
    _rule(IssueCategory.THEFT, "stolen", "robbed", "theft", "snatched"),
    _rule(IssueCategory.FRAUD, "fraud", "cheat", "scam", "money lost", "phoney call"),
    _rule(IssueCategory.CYBERCRIME, "hack", "fake profile", "phishing", "cyber", "online abuse"),
]


def classify_issue(message: str) -> IssueCategory:
    """Return the issue category for a free-text message."""
    text = message.lower()
    for category, pattern in ISSUE_RULES:
        if pattern.search(text):
            return category
    return DEFAULT_CATEGORY


@dataclass(frozen=True)
class LawEntry:
    description: str
    sections: Tuple[str, ...]
    steps: Tuple[str, ...]


LAWS = {
    IssueCategory.HARASSMENT: LawEntry(
        description="Harassment is unwanted behavior causing fear, discomfort, or threat.",
        sections=("354", "509"),
        steps=(
            "Document incidents (photos, texts, emails).",
            "Tell a trusted person or relative.",
            "Contact local police or a women's helpline.",
            "File a First Information Report (FIR).",
        ),
    ),
    IssueCategory.DOMESTIC_VIOLENCE: LawEntry(
        description=(
            "Domestic violence is abuse by a family member or spouse, "
            "physical, emotional, or financial."
        ),
        sections=("498A", "304B", "Protection of Women from Domestic Violence Act, 2005"),
        steps=(
            "Seek medical attention if injured.",
            "Approach nearest police station or Protection Officer.",
            "File a Domestic Incident Report (DIR).",
            "Consult a lawyer for protection orders.",
        ),
    ),
    IssueCategory.THEFT: LawEntry(
        description="Theft is taking someone's property without permission.",
        sections=("378", "379"),
        steps=(
            "Call police immediately.",
            "Preserve evidence if possible.",
            "File a formal complaint (FIR) detailing stolen items.",
            "Report stolen documents to issuing authority.",
        ),
    ),
    IssueCategory.FRAUD: LawEntry(
        description="Fraud is cheating someone to take money or property dishonestly.",
        sections=("420", "406"),
        steps=(
            "Collect all proof (bank statements, emails, transactions).",
            "Inform your bank to freeze accounts.",
            "File a complaint with police or EOW.",
            "Seek legal advice to recover losses.",
        ),
    ),
    IssueCategory.CYBERCRIME: LawEntry(
        description="Cybercrime involves hacking, phishing, online scams, or abuse.",
        sections=("66", "66C", "66D IT Act"),
        steps=(
            "Take screenshots and save URLs.",
            "Do not delete evidence.",
            "Report to National Cybercrime Reporting Portal.",
            "File a complaint at police/Cyber Cell.",
        ),
    ),
    IssueCategory.GENERAL: LawEntry(
        description="General issues. Provide details for accurate guidance.",
        sections=("IPC / Relevant Acts determined by facts.",),
        steps=("Provide specific details about your legal issue (what, when, where).",),
    ),
}


INCIDENT_QUESTIONS: Tuple[str, ...] = (
    "Can you describe exactly what happened?",
    "Where and when did this incident occur?",
    "Who was involved in this incident?",
    "Do you have any evidence (photos, messages, emails)?",
)


def format_legal_summary(category: IssueCategory) -> str:
    """Render the law table entry for ``category`` as a markdown block."""
    law = LAWS[category]
    steps = "\n".join(f"- {step}" for step in law.steps)
    return (
        f"**Applicable Law ({category.value.upper()}):** {law.description}\n"
        f"**Relevant IPC Sections:** {', '.join(law.sections)}\n"
        f"**Recommended Steps:**\n"
        f"{steps}"
    )
