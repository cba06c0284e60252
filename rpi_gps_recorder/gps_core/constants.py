"""GPS/NMEA protocol constants and recorder defaults."""

# Speed conversion factors
KMH_PER_KNOT = 1.852
MPS_PER_KMH = 1.0 / 3.6

# Fix mode mapping (from NMEA GSA sentence)
FIX_MODE_MAP = {
    1: "none",
    2: "2d",
    3: "3d",
}

# GGA quality indicator 0 means the receiver has no position
GGA_NO_FIX = 0

# Serial configuration
DEFAULT_SERIAL_PORT = "/dev/serial0"
DEFAULT_INITIAL_BAUD_RATE = 9600
DEFAULT_BAUD_RATE = 115200
DEFAULT_UPDATE_RATE_MS = 500
DEFAULT_RECONNECT_DELAY = 3.0
BAUD_SWITCH_PAUSE_S = 0.1

# Storage and export
DEFAULT_DB_PATH = "data/data.db"
DEFAULT_OUTPUT_DIR = "."
EXPORT_FILENAME_PREFIX = "record"
EXPORT_TIME_FORMAT = "%Y-%m-%dT%H%M%S"

# Fix filtering and segmentation
DEFAULT_MIN_DISTANCE_M = 3.0
DEFAULT_MIN_INTERVAL_S = 5.0
DEFAULT_MAX_SEGMENT_POINTS = 200
DEFAULT_MAX_SEGMENT_DURATION_S = 3.0
DEFAULT_STALENESS_S = 3.0
DEFAULT_SOURCE_TAG = "MTK3339"
