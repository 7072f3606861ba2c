from .review import build_review, step_completion, submission_issues  # noqa: F401
from .signals import generate_signal_tests  # noqa: F401
from .steps import get_step, STEP_NAMES, WizardStep, WIZARD_STEPS  # noqa: F401
