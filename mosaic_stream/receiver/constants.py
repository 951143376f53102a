"""mosaic receiver wire-format constants and configuration defaults."""

# Sync bytes ("$" followed by a protocol marker)
SYNC_BYTE = 0x24           # "$"
SBF_SYNC_BYTE_2 = 0x40     # "@" - SBF binary block
NMEA_SYNC_BYTES_2 = (0x47, 0x50)  # "G" standard sentence, "P" proprietary sentence
RESPONSE_SYNC_BYTE_2 = 0x52  # "R" - reply to a receiver command
CARRIAGE_RETURN = 0x0D
LINE_FEED = 0x0A
CRLF = b"\r\n"

# SBF header: sync(2) + CRC(2) + ID(2) + length(2), all little-endian
SBF_HEADER_SIZE = 8
SBF_CRC_OFFSET = 2
SBF_ID_OFFSET = 4
SBF_LENGTH_OFFSET = 6
SBF_BLOCK_NUMBER_MASK = 0x1FFF
SBF_REVISION_SHIFT = 13
SBF_LENGTH_ALIGNMENT = 4
SBF_TOW_OFFSET = 8
SBF_WNC_OFFSET = 12

# Largest block accepted before the header is treated as corrupt
DEFAULT_MAX_BLOCK_LENGTH = 8192
# Longest ASCII line searched for a terminator before resynchronizing
DEFAULT_MAX_ASCII_LENGTH = 4096

# SBF "do not use" markers
TOW_DO_NOT_USE = 4294967295
WNC_DO_NOT_USE = 65535
FLOAT_DO_NOT_USE = -2e10

# GPS time
GPS_EPOCH_UNIX = 315964800  # 1980-01-06T00:00:00Z
SECONDS_PER_WEEK = 604800
MS_PER_WEEK = SECONDS_PER_WEEK * 1000
DEFAULT_LEAP_SECONDS = 18

# PVT solution type (lower 4 bits of the Mode field)
PVT_MODE_MASK = 0x0F
PVT_MODE_NO_PVT = 0
PVT_MODE_STAND_ALONE = 1
PVT_MODE_DIFFERENTIAL = 2
PVT_MODE_FIXED_LOCATION = 3
PVT_MODE_RTK_FIXED = 4
PVT_MODE_RTK_FLOAT = 5
PVT_MODE_SBAS = 6
PVT_MODE_MOVING_BASE_RTK_FIXED = 7
PVT_MODE_MOVING_BASE_RTK_FLOAT = 8
PVT_MODE_PPP = 10

# Session defaults
DEFAULT_BAUD_RATE = 115200
DEFAULT_RECONNECT_DELAY = 3.0
DEFAULT_FRAME_ID = "gnss"
DEFAULT_READ_SIZE = 4096
DEFAULT_MAX_BUFFER_BYTES = 65536

# Decoded record CSV header
RECORD_CSV_HEADER = [
    "record_time_unix",
    "kind",
    "sequence",
    "stamp_sec",
    "stamp_nsec",
    "frame_id",
    "fields_json",
]
