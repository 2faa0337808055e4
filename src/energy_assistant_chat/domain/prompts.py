"""Fixed texts sent to the model or shown to the user."""

from .models import ChatTurn, ScenarioInput, SYSTEM_ROLE

SYSTEM_INSTRUCTION = """You are a Multilingual Energy Assistant.

**Style Rules:**
* Always reply in the user's language.
* **Use Markdown for professional formatting.**
* Use **bolding** for emphasis and labels (e.g., "**Key Risks:**").
* Use `##` for main titles (e.g., "## ⚡ Energy Scenario Analysis").
* Use `###` for sub-sections (e.g., "### Step-by-Step Recommendations").
* Use bulleted (`*`) or numbered (`1.`) lists for clarity.
* Use blockquotes (`>`) for important notes or summaries.
* Use inline `code` for technical terms, units, or variables.
* Use code fences ( ``` ) for multi-line code blocks or data examples.

**Special Behaviour for "Energy scenario simulation":**
* When the user provides scenario data (solar, EV, storage), format your reply using Markdown headings as defined in the style rules.
* Start with `## ⚡ Energy Scenario Simulation – Detailed Analysis`
* Use `###` for these sections:
    * `### Scenario`
    * `### Expected Load vs Generation`
    * `### Key Risks & Bottlenecks`
    * `### Step-by-Step Recommendations`
    * `### Useful Charts / Maps to Show`
    * `### TTS-Friendly Summary`"""

SYSTEM_MESSAGE = ChatTurn(role=SYSTEM_ROLE, content=SYSTEM_INSTRUCTION)

WELCOME_TEXT = (
    "## ⚡ Welcome to the Multilingual Energy Assistant.\n\n"
    "Ask anything about energy (solar, wind, EV, grid, policies, etc.) in English, "
    "Bangla, or any language. \n\n"
    "> You can also attach images / documents, or use the **Scenario Simulation** panel."
)

ATTACHMENT_ONLY_TEXT = "Please analyse the attached file(s) / image(s)."
EMPTY_REPLY_TEXT = "I couldn’t generate a response."
GENERIC_ERROR_TEXT = "Something went wrong talking to the model."
WARNING_PREFIX = "⚠️ "


def build_scenario_prompt(scenario: ScenarioInput) -> str:
    """Render the scenario fields into the structured simulation prompt."""
    solar = scenario.solar or "0"
    ev = scenario.ev or "0"
    storage = scenario.storage or "0"
    return (
        "Energy scenario simulation.\n\n"
        f"Solar capacity: {solar} MW\n"
        f"EV adoption: {ev} %\n"
        f"Storage capacity: {storage} MWh\n\n"
        "Act as the Multilingual Energy Assistant and reply in the user's language.\n\n"
        "Format the answer EXACTLY as requested in the system message's "
        '"Energy scenario simulation" section (using ## for the main title '
        "and ### for subsections).\n\n"
        "Here is the data:\n"
        f"* Solar: {solar} MW\n"
        f"* EV: {ev} %\n"
        f"* Storage: {storage} MWh\n"
    )
