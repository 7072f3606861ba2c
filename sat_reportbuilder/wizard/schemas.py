"""
Marshmallow schemas of the wizard steps.

Loaded data is keyed by attribute name, dumping it back gives the
camelCase document that is stored on ``ReportStep.data``.
"""

from marshmallow import fields, validate

from ..api.schemas import StrippedSchema
from ..security.input_validation import InputValidator

RESULT_CHOICES = ["PASS", "FAIL", "NA"]
SEVERITY_CHOICES = ["CRITICAL", "HIGH", "MEDIUM", "LOW"]
PUNCH_STATUS_CHOICES = ["OPEN", "CLOSED"]


def required_string(message, max_length=None, **kwargs):
    validators = [validate.Length(min=1, error=message)]
    if max_length is not None:
        validators.append(validate.Length(max=max_length))
    return fields.String(
        required=True,
        validate=validators,
        error_messages={"required": message},
        **kwargs,
    )


def optional_string(**kwargs):
    return fields.String(allow_none=True, **kwargs)


def result_field():
    return fields.String(allow_none=True, validate=validate.OneOf(RESULT_CHOICES))


def table(schema, **kwargs):
    return fields.List(fields.Nested(schema), load_default=list, **kwargs)


class SanitizedHTML(fields.String):
    """Rich text, markup outside the allowed formatting is stripped"""

    def _deserialize(self, value, attr, data, **kwargs):
        value = super(SanitizedHTML, self)._deserialize(value, attr, data, **kwargs)
        return InputValidator.sanitize_html(value)


"""
----------------------------------------
    STEP 0: PRE CONFIGURATION
----------------------------------------
"""


class DigitalModuleSchema(StrippedSchema):
    rack_no = required_string("Rack number is required", data_key="rackNo")
    module_position = required_string(
        "Module position is required", data_key="modulePosition"
    )
    channel_count = fields.Integer(
        required=True,
        data_key="channelCount",
        validate=validate.Range(min=1, error="Channel count must be at least 1"),
    )


class AnalogModuleSchema(StrippedSchema):
    rack_no = required_string("Rack number is required", data_key="rackNo")
    module_position = required_string(
        "Module position is required", data_key="modulePosition"
    )
    default_range = required_string(
        "Default I/O range is required", data_key="defaultRange"
    )


class RegisterBlockSchema(StrippedSchema):
    start_address = fields.Integer(
        required=True, data_key="startAddress", validate=validate.Range(min=0)
    )
    register_count = fields.Integer(
        required=True, data_key="registerCount", validate=validate.Range(min=0)
    )


class ModbusConfigSchema(StrippedSchema):
    digital_coils = fields.Nested(RegisterBlockSchema, data_key="digitalCoils")
    digital_inputs = fields.Nested(RegisterBlockSchema, data_key="digitalInputs")
    analog_holding = fields.Nested(RegisterBlockSchema, data_key="analogHolding")
    analog_input = fields.Nested(RegisterBlockSchema, data_key="analogInput")


class PreConfigurationSchema(StrippedSchema):
    digital_modules = table(DigitalModuleSchema, data_key="digitalModules")
    analog_modules = table(AnalogModuleSchema, data_key="analogModules")
    modbus_config = fields.Nested(ModbusConfigSchema, data_key="modbusConfig")


"""
----------------------------------------
    STEP 1..7
----------------------------------------
"""


class DocumentInfoSchema(StrippedSchema):
    title = required_string("Report title is required", max_length=256)
    project_ref = required_string(
        "Project reference is required", max_length=128, data_key="projectRef"
    )
    document_ref = required_string(
        "Document reference is required", max_length=128, data_key="documentRef"
    )
    revision = required_string("Revision is required", max_length=32)
    date = required_string("Date is required")
    prepared_by = required_string("Prepared by is required", data_key="preparedBy")
    tm_id = fields.Integer(data_key="tmId", allow_none=True)
    pm_id = fields.Integer(data_key="pmId", allow_none=True)


class RelatedDocumentSchema(StrippedSchema):
    name = required_string("Document name is required")
    reference = required_string("Reference is required")


class IntroductionScopeSchema(StrippedSchema):
    introduction = SanitizedHTML(
        required=True,
        validate=validate.Length(min=1, error="Introduction is required"),
    )
    scope = SanitizedHTML(
        required=True,
        validate=validate.Length(min=1, error="Scope of work is required"),
    )
    related_documents = table(RelatedDocumentSchema, data_key="relatedDocuments")


class RequirementSchema(StrippedSchema):
    item = required_string("Item is required")
    test = required_string("Test description is required")
    method = required_string("Method/Test steps are required")
    acceptance_criteria = required_string(
        "Acceptance criteria is required", data_key="acceptanceCriteria"
    )


class PreTestRequirementsSchema(StrippedSchema):
    requirements = table(RequirementSchema)


class KeyComponentSchema(StrippedSchema):
    serial_no = required_string("Serial number is required", data_key="serialNo")
    model = required_string("Model is required")
    description = required_string("Description is required")
    remarks = optional_string()


class IpAddressSchema(StrippedSchema):
    device_name = required_string("Device name is required", data_key="deviceName")
    ip_address = required_string("IP address is required", data_key="ipAddress")
    gateway = optional_string()
    comments = optional_string()


class AssetRegisterSchema(StrippedSchema):
    key_components = table(KeyComponentSchema, data_key="keyComponents")
    ip_addresses = table(IpAddressSchema, data_key="ipAddresses")


class SignalResultSchema(StrippedSchema):
    result = result_field()
    punch_item = optional_string(data_key="punchItem")
    verified_by = optional_string(data_key="verifiedBy")
    comment = optional_string()


class DigitalSignalSchema(SignalResultSchema):
    serial_no = required_string("Serial number is required", data_key="serialNo")
    rack_no = required_string("Rack number is required", data_key="rackNo")
    module_pos = required_string("Module position is required", data_key="modulePos")
    signal_tag = required_string("Signal tag is required", data_key="signalTag")
    signal_desc = required_string(
        "Signal description is required", data_key="signalDesc"
    )


class AnalogSignalSchema(SignalResultSchema):
    serial_no = required_string("Serial number is required", data_key="serialNo")
    rack_no = required_string("Rack number is required", data_key="rackNo")
    module_pos = required_string("Module position is required", data_key="modulePos")
    io_range = required_string("I/O range is required", data_key="ioRange")
    signal_tag = required_string("Signal tag is required", data_key="signalTag")


class ModbusDigitalSchema(SignalResultSchema):
    address = required_string("Address is required")
    description = required_string("Description is required")
    tag = required_string("Tag is required")


class ModbusAnalogSchema(SignalResultSchema):
    address = required_string("Address is required")
    description = required_string("Description is required")
    range = required_string("Range is required")
    tag = required_string("Tag is required")


class SignalTestsSchema(StrippedSchema):
    digital_signals = table(DigitalSignalSchema, data_key="digitalSignals")
    analog_signals = table(AnalogSignalSchema, data_key="analogSignals")
    modbus_digital = table(ModbusDigitalSchema, data_key="modbusDigital")
    modbus_analog = table(ModbusAnalogSchema, data_key="modbusAnalog")


class ScadaVerificationSchema(StrippedSchema):
    item = required_string("Item is required")
    description = required_string("Description is required")
    result = result_field()
    remarks = optional_string()


class TrendsTestSchema(StrippedSchema):
    parameter = required_string("Parameter is required")
    expected_trend = required_string(
        "Expected trend is required", data_key="expectedTrend"
    )
    actual_result = optional_string(data_key="actualResult")
    result = result_field()
    remarks = optional_string()


class AlarmScreenshotSchema(StrippedSchema):
    id = fields.Raw(required=True)
    filename = fields.String(required=True)
    original_name = fields.String(required=True, data_key="originalName")
    description = optional_string()


class ProcessScadaAlarmsSchema(StrippedSchema):
    scada_verification = table(ScadaVerificationSchema, data_key="scadaVerification")
    trends_tests = table(TrendsTestSchema, data_key="trendsTests")
    alarm_screenshots = table(AlarmScreenshotSchema, data_key="alarmScreenshots")


class TestEquipmentSchema(StrippedSchema):
    item = required_string("Item is required")
    model = required_string("Model is required")
    serial_no = required_string("Serial number is required", data_key="serialNo")
    calibration_due = required_string(
        "Calibration due date is required", data_key="calibrationDue"
    )


class PunchItemSchema(StrippedSchema):
    item_no = required_string("Item number is required", data_key="itemNo")
    description = required_string("Description is required")
    severity = fields.String(required=True, validate=validate.OneOf(SEVERITY_CHOICES))
    assigned_to = required_string("Assigned to is required", data_key="assignedTo")
    due_date = required_string("Due date is required", data_key="dueDate")
    status = fields.String(
        load_default="OPEN", validate=validate.OneOf(PUNCH_STATUS_CHOICES)
    )


class TestEquipmentPunchSchema(StrippedSchema):
    test_equipment = table(TestEquipmentSchema, data_key="testEquipment")
    punch_list = table(PunchItemSchema, data_key="punchList")
