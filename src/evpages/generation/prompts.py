"""Prompt registry and builders for locality content generation.

System prompts are versioned so each run can record exactly which prompt
produced a page. Task prompts are assembled from ContentFacts only; no
free-form user text ever reaches the generation service.
"""

import logging

import mlflow

from evpages.core.types import ContentFacts

logger = logging.getLogger(__name__)

FAQ_SIZE = 5

# ---------------------------------------------------------------------------
# Prompt versions
# ---------------------------------------------------------------------------

INTRO_SYSTEM_PROMPT_V1 = (
    "You are an expert content writer specializing in EV charging infrastructure and local "
    "home improvement guides. Write unique, data-driven content that helps homeowners make "
    "informed decisions."
)

FAQ_SYSTEM_PROMPT_V1 = (
    "You are an expert in EV charging installation. Generate helpful, locally-relevant FAQ "
    "content in JSON format."
)

_PROMPT_REGISTRY: dict[str, tuple[str, str]] = {
    "intro": ("v1", INTRO_SYSTEM_PROMPT_V1),
    "faq": ("v1", FAQ_SYSTEM_PROMPT_V1),
}


def get_active_prompt(name: str) -> str:
    """Return the active system prompt for ``name``.

    Raises:
        KeyError: If prompt name is not registered.
    """
    if name not in _PROMPT_REGISTRY:
        raise KeyError(f"Unknown prompt: {name!r}. Available: {list(_PROMPT_REGISTRY.keys())}")
    return _PROMPT_REGISTRY[name][1]


def get_prompt_version(name: str) -> str:
    if name not in _PROMPT_REGISTRY:
        raise KeyError(f"Unknown prompt: {name!r}. Available: {list(_PROMPT_REGISTRY.keys())}")
    return _PROMPT_REGISTRY[name][0]


def list_prompts() -> list[dict[str, str]]:
    return [{"name": name, "version": ver} for name, (ver, _) in _PROMPT_REGISTRY.items()]


def log_prompts_to_run() -> None:
    """Log every registered prompt as an MLflow artifact of the active run."""
    for name, (version, text) in _PROMPT_REGISTRY.items():
        mlflow.log_text(text, f"prompts/{name}_{version}.txt")
        mlflow.set_tag(f"prompt_{name}_version", version)
        logger.debug("Logged prompt %s (%s) to MLflow run", name, version)


# ---------------------------------------------------------------------------
# Task prompts
# ---------------------------------------------------------------------------

def _incentive_line(facts: ContentFacts) -> str:
    if not facts.incentives:
        return ""
    return f"- Available incentives: {', '.join(facts.incentives)}\n"


def build_intro_prompt(facts: ContentFacts) -> str:
    return (
        f"Write a unique, helpful 250-word introduction for an article about EV charger "
        f"installation in {facts.name}, {facts.region_name}.\n\n"
        "REQUIRED DATA POINTS TO INCLUDE NATURALLY:\n"
        f"- City: {facts.name}, {facts.region_name}\n"
        f"- Population: {facts.population:,} residents\n"
        f"- Average installation cost: ${facts.avg_install_cost:,}\n"
        f"- Local electricity rate: ${facts.electricity_rate:.2f}/kWh\n"
        f"{_incentive_line(facts)}\n"
        "TONE: Helpful, authoritative, local-focused\n"
        "AVOID: Generic advice, repetitive phrases, obvious statements\n"
        f"INCLUDE: Specific mention of {facts.name}'s characteristics "
        "(e.g., climate, EV adoption, local infrastructure)\n"
        "FORMAT: 2-3 paragraphs, conversational but professional\n\n"
        'Do not use phrases like "As a resident of..." or "If you live in...". '
        "Write directly and naturally."
    )


def build_faq_prompt(facts: ContentFacts) -> str:
    return (
        f"Generate {FAQ_SIZE} unique FAQ questions and answers about EV charger installation "
        f"specifically for {facts.name}, {facts.region_name}.\n\n"
        "CONTEXT:\n"
        f"- City: {facts.name}, {facts.region_name}\n"
        f"- Average cost: ${facts.avg_install_cost:,}\n"
        f"- Electricity rate: ${facts.electricity_rate:.2f}/kWh\n"
        f"- State: {facts.region_name}\n"
        f"{_incentive_line(facts)}\n"
        "REQUIREMENTS:\n"
        f"1. Questions must be specific to {facts.name} or {facts.region_name}\n"
        "2. Include local data points (costs, rates, incentives)\n"
        "3. Answer common homeowner concerns\n"
        "4. Be practical and actionable\n"
        "5. Vary question structure\n\n"
        f'FORMAT: Return a JSON object {{"faqs": [...]}} with exactly {FAQ_SIZE} entries:\n'
        '{"faqs": [{"question": "...", "answer": "..."}, ...]}'
    )


def build_messages(name: str, user_prompt: str) -> list[dict]:
    """Chat messages for the registered system prompt ``name`` plus the task prompt."""
    return [
        {"role": "system", "content": get_active_prompt(name)},
        {"role": "user", "content": user_prompt},
    ]
