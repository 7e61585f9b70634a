"""
Context suffixes appended to system prompts.

UI/UX requests can describe the audience of the site under review; contract
requests can carry metadata about the contract. Empty context adds nothing.
"""

from typing import Any, Mapping, Optional

# (context key, label) - list values are joined with ", "
WEBSITE_FIELDS = [
    ("targetAge", "Target audience age groups"),
    ("targetGender", "Target gender audience"),
    ("educationLevel", "Target education level"),
    ("incomeLevel", "Target income level"),
    ("techFriendliness", "User tech-friendliness"),
    ("businessSector", "Business sector/industry"),
    ("additionalContext", "Additional context"),
]

CONTRACT_FIELDS = [
    ("contractName", "Contract Name"),
    ("blockchain", "Target Blockchain"),
    ("solidityVersion", "Solidity Version"),
    ("purpose", "Contract Purpose"),
    ("githubRepo", "GitHub Repository"),
]


def _as_text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value if str(v).strip())
    if value is None:
        return ""
    return str(value).strip()


def website_context(context: Optional[Mapping[str, Any]]) -> str:
    """Audience/business section for UI/UX prompts."""
    if not context:
        return ""

    parts = []
    for key, label in WEBSITE_FIELDS:
        text = _as_text(context.get(key))
        if text:
            parts.append(f"- {label}: {text}")

    if not parts:
        return ""

    return (
        "\n\n## Website Context\n"
        "The website being analyzed has the following characteristics:\n"
        + "\n".join(parts)
        + "\n\nPlease tailor your analysis to be relevant for this specific audience and business context."
    )


def contract_context(context: Optional[Mapping[str, Any]]) -> str:
    """Metadata section for contract prompts."""
    if not context:
        return ""

    lines = []
    for key, label in CONTRACT_FIELDS:
        text = _as_text(context.get(key))
        if text:
            lines.append(f"{label}: {text}")

    if not lines:
        return ""
    return "\n\n## Additional Contract Context\n" + "\n".join(lines) + "\n"


CONTEXT_BUILDERS = {
    "ui_ux": website_context,
    "contract": contract_context,
}
