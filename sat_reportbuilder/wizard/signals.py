"""
Signal test generation from the module and Modbus pre configuration.
"""

from typing import Any, Dict, List

DIGITAL_CHANNELS_DEFAULT = 16
ANALOG_CHANNELS = 8
DEFAULT_IO_RANGE = "4-20mA"

# (config key, default start address, tag prefix, description)
MODBUS_DIGITAL_BLOCKS = [
    ("digitalCoils", 0, "MB_COIL", "Digital Coil"),
    ("digitalInputs", 10000, "MB_DI", "Digital Input"),
]
MODBUS_ANALOG_BLOCKS = [
    ("analogHolding", 40000, "MB_HR", "Holding Register"),
    ("analogInput", 30000, "MB_IR", "Input Register"),
]


def _result_columns() -> Dict[str, Any]:
    return {"result": None, "punchItem": "", "verifiedBy": "", "comment": ""}


def digital_signals(modules: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows = []
    for m, module in enumerate(modules, start=1):
        rack = module.get("rackNo") or "1"
        position = module.get("modulePosition") or "1"
        for i in range(1, (module.get("channelCount") or DIGITAL_CHANNELS_DEFAULT) + 1):
            rows.append(
                {
                    "serialNo": f"{m}.{i}",
                    "rackNo": rack,
                    "modulePos": position,
                    "signalTag": f"DI_{rack}_{position}_{i:02d}",
                    "signalDesc": f"Digital Input {i}",
                    **_result_columns(),
                }
            )
    return rows


def analog_signals(modules: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows = []
    for m, module in enumerate(modules, start=1):
        rack = module.get("rackNo") or "1"
        position = module.get("modulePosition") or "2"
        for i in range(1, ANALOG_CHANNELS + 1):
            rows.append(
                {
                    "serialNo": f"{m}.{i}",
                    "rackNo": rack,
                    "modulePos": position,
                    "ioRange": module.get("defaultRange") or DEFAULT_IO_RANGE,
                    "signalTag": f"AI_{rack}_{position}_{i:02d}",
                    **_result_columns(),
                }
            )
    return rows


def _modbus_rows(modbus_config, blocks, analog=False):
    rows = []
    for key, default_start, prefix, description in blocks:
        block = modbus_config.get(key) or {}
        # an unset or zero start address uses the block default
        start = block.get("startAddress") or default_start
        for n in range(1, (block.get("registerCount") or 0) + 1):
            row = {
                "address": str(start + n - 1),
                "description": f"{description} {n}",
                "tag": f"{prefix}_{n}",
            }
            if analog:
                row["range"] = DEFAULT_IO_RANGE
            row.update(_result_columns())
            rows.append(row)
    return rows


def generate_signal_tests(pre_configuration: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the ``signal_tests`` step document from a ``pre_configuration``
    step document. Test results start empty.
    """
    modbus_config = pre_configuration.get("modbusConfig") or {}
    return {
        "digitalSignals": digital_signals(pre_configuration.get("digitalModules") or []),
        "analogSignals": analog_signals(pre_configuration.get("analogModules") or []),
        "modbusDigital": _modbus_rows(modbus_config, MODBUS_DIGITAL_BLOCKS),
        "modbusAnalog": _modbus_rows(modbus_config, MODBUS_ANALOG_BLOCKS, analog=True),
    }
