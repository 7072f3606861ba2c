"""
Report wizard steps.

Each step owns a slice of the report document, stored as JSON on a
``ReportStep`` row, and the marshmallow schema that validates it.
The last step holds no data, it is computed by the review.
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Type

from marshmallow import Schema, ValidationError

from .schemas import (
    AssetRegisterSchema,
    DocumentInfoSchema,
    IntroductionScopeSchema,
    PreConfigurationSchema,
    PreTestRequirementsSchema,
    ProcessScadaAlarmsSchema,
    SignalTestsSchema,
    TestEquipmentPunchSchema,
)

log = logging.getLogger(__name__)


class WizardStep:
    """
    Represents a single step in the report wizard

    Args:
        name: Unique step identifier, also the ``ReportStep.step_name``
        title: Display title for the step
        schema: marshmallow schema of the step data, None for computed steps
        description: Optional description text
    """

    def __init__(
        self,
        name: str,
        title: str,
        schema: Optional[Type[Schema]] = None,
        description: Optional[str] = None,
    ):
        self.name = name
        self.title = title
        self.schema = schema
        self.description = description

    @property
    def stores_data(self) -> bool:
        return self.schema is not None

    def clean(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate and normalise the step data: strings are trimmed,
        rich text is sanitised, defaults are filled and unknown keys dropped.

        :raises marshmallow.ValidationError: on invalid data
        """
        if self.schema is None:
            raise ValidationError({"_schema": [f"Step {self.name} does not store data"]})
        schema = self.schema()
        try:
            return schema.dump(schema.load(data))
        except ValidationError as e:
            log.warning(
                "Step %s validation failed with errors: %s", self.name, e.messages
            )
            raise


WIZARD_STEPS: "OrderedDict[str, WizardStep]" = OrderedDict(
    (step.name, step)
    for step in [
        WizardStep(
            "pre_configuration",
            "Module & Modbus Setup",
            PreConfigurationSchema,
            "I/O modules and Modbus register blocks used to generate the signal tests",
        ),
        WizardStep(
            "document_info",
            "Document Information",
            DocumentInfoSchema,
            "Report identification and approvers",
        ),
        WizardStep(
            "introduction_scope",
            "Introduction & Scope",
            IntroductionScopeSchema,
            "Purpose, scope of work and related documents",
        ),
        WizardStep(
            "pre_test_requirements",
            "Pre-Test Requirements",
            PreTestRequirementsSchema,
            "Conditions to verify before testing",
        ),
        WizardStep(
            "asset_register",
            "Asset Register",
            AssetRegisterSchema,
            "Key components and network addresses",
        ),
        WizardStep(
            "signal_tests",
            "Signal Tests",
            SignalTestsSchema,
            "Digital, analog and Modbus signal verification",
        ),
        WizardStep(
            "process_scada_alarms",
            "Process, SCADA & Alarms",
            ProcessScadaAlarmsSchema,
            "SCADA verification, trends and alarm screenshots",
        ),
        WizardStep(
            "test_equipment_punch",
            "Test Equipment & Punch List",
            TestEquipmentPunchSchema,
            "Equipment used and issues to resolve",
        ),
        WizardStep("review_submit", "Review & Submit"),
    ]
)

STEP_NAMES: List[str] = list(WIZARD_STEPS)

# Steps that count towards the overall completion
REVIEW_STEP_NAMES: List[str] = STEP_NAMES[1:-1]


def get_step(name: str) -> Optional[WizardStep]:
    return WIZARD_STEPS.get(name)
