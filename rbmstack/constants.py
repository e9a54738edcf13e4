from typing import Dict

BIAS = 1.0
ZERO = -1.0

GIBBS_STEPS = 3
CD_ROUNDS = 4
ERROR_TRIALS = 512
DECAY_INTERVAL = 16
REPORT_INTERVAL = 512
MONITOR_INTERVAL_SECONDS = 1.5

DEFAULT_STDDEV = 1.0
DEFAULT_RATE = 0.001
DEFAULT_ROUNDS = 1024
DEFAULT_HIDDEN = [2]
DEFAULT_SAMPLES = 16

CONFIG_FILE = "config.yaml"

SEED = 1

FLOAT_FORMAT = ".flt"
SIGN_FORMAT = ".sgn"
TEXT_FLOAT_FORMAT = ".tsv"
TEXT_SIGN_FORMAT = ".txt"
ARRAY_FORMATS: Dict[str, str] = {
    FLOAT_FORMAT: "binary float64",
    SIGN_FORMAT: "binary signs",
    TEXT_FLOAT_FORMAT: "tab-separated floats",
    TEXT_SIGN_FORMAT: "text signs",
}

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
