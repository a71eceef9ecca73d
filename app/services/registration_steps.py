"""Wizard step sequencing. The step list is recomputed from (user type, OAuth) on every call."""
from app.schemas.registration import StepInfo

STEP_USERTYPE = "usertype"
STEP_COMPANY = "company"
STEP_PERSONAL = "personal"
STEP_PITCH = "pitch"

ALL_STEPS = (STEP_USERTYPE, STEP_COMPANY, STEP_PERSONAL, STEP_PITCH)

_COMPANY_TEXT = {
    "Inventor": ("Invention Info", "Tell us about your invention and how you want to be funded"),
    "StartUp": ("Startup Info", "Tell us about your startup and your commercial proposal"),
    "Company": ("Company Info", "Tell us about your company and your commercial proposal"),
    "Investor": ("Investor Info", "Tell us who you are and what you invest in"),
}


def build_steps(user_type: str | None, is_oauth_user: bool) -> list[StepInfo]:
    company_title, company_description = _COMPANY_TEXT.get(
        user_type or "", ("Business Info", "Tell us about your business")
    )
    steps = [
        StepInfo(id=STEP_USERTYPE, title="User Role", description="Select your role"),
        StepInfo(id=STEP_COMPANY, title=company_title, description=company_description),
    ]
    # OAuth users already have their identity from the provider
    if not is_oauth_user:
        steps.append(StepInfo(id=STEP_PERSONAL, title="Personal Info", description="Tell us about yourself"))
    steps.append(StepInfo(id=STEP_PITCH, title="Pitch Info", description="Upload your pitch materials"))
    return steps


def _index(steps: list[StepInfo], current: str) -> int:
    ids = [s.id for s in steps]
    if current in ids:
        return ids.index(current)
    # Step elided after a change of flags: position on the next step that still exists
    order = ALL_STEPS.index(current) if current in ALL_STEPS else 0
    for i, step_id in enumerate(ids):
        if ALL_STEPS.index(step_id) > order:
            return i
    return len(ids) - 1


def resolve_current(steps: list[StepInfo], current: str) -> str:
    return steps[_index(steps, current)].id


def progress(steps: list[StepInfo], current: str) -> float:
    return round((_index(steps, current) + 1) / len(steps) * 100, 2)


def is_final(steps: list[StepInfo], current: str) -> bool:
    return _index(steps, current) == len(steps) - 1


def next_step(steps: list[StepInfo], current: str) -> str:
    i = _index(steps, current)
    return steps[min(i + 1, len(steps) - 1)].id


def previous_step(steps: list[StepInfo], current: str) -> str:
    i = _index(steps, current)
    return steps[max(i - 1, 0)].id
