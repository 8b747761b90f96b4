# Delimits variable-length match records in flat detector output.
# Equal to the largest unsigned 32-bit id, which is never a valid node id.
SENTINEL = 0xFFFFFFFF

SHELL_MIN_DEGREE = 2
SHELL_MAX_DEGREE = 3


class PatternTypes:
    FAN_IN = "fan_in"
    FAN_OUT = "fan_out"
    CYCLE = "cycle"
    SHELL_CHAIN = "shell_chain"


class DetectionMethods:
    SLIDING_WINDOW = "sliding_window"
    CYCLE_DETECTION = "cycle_detection"
    PATH_ANALYSIS = "path_analysis"


class AddressRoles:
    AGGREGATOR = "aggregator"
    DISTRIBUTOR = "distributor"
    COUNTERPARTY = "counterparty"
    PARTICIPANT = "participant"
    SOURCE = "source"
    SHELL = "shell"
    DESTINATION = "destination"
