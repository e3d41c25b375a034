"""
IPDR Explorer — Configuration: header aliases, field classes, limits.
"""
import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Paths: override with IPDR_EXPORT_DIR env var
# ---------------------------------------------------------------------------
EXPORTS_FOLDER = Path(os.environ.get("IPDR_EXPORT_DIR", str(Path.home() / "IPDR Exports")))

# ---------------------------------------------------------------------------
# Header aliases from operator exports → canonical field names.
# Aliases are compared after lowercasing and stripping spaces, underscores
# and hyphens, so "Caller Number", "caller_number" and "CALLER-NUMBER" all
# hit the same entry. Each canonical name is implicitly its own alias.
# ---------------------------------------------------------------------------
HEADER_ALIASES = {
    # MSISDN (phone number)
    "msisdn": [
        "msisdn", "calling_number", "caller_number", "calling_party_number",
        "a_msisdn", "phone_number", "mobile_no", "caller_msisdn", "a_number",
    ],
    "called_msisdn": [
        "called_number", "called_party_number", "b_msisdn", "b_number",
    ],
    # Device / subscriber identity
    "imei": ["imei", "device_imei"],
    "imsi": ["imsi"],
    # IP addresses
    "source_ip": [
        "source_ip", "src_ip", "user_ip", "client_ip", "public_ip", "private_ip",
    ],
    "destination_ip": ["destination_ip", "dest_ip", "dst_ip", "server_ip"],
    # Timestamps
    "start_time": [
        "start_time", "session_start", "timestamp", "event_timestamp",
        "start_date", "record_opening_time",
    ],
    "end_time": ["end_time", "session_end", "end_date"],
    # Data volume
    "data_up": ["uplink_volume", "data_upload", "bytes_up"],
    "data_down": ["downlink_volume", "data_download", "bytes_down"],
    # Location
    "cell_id": ["cell_id", "location", "cell_tower_id"],
    # Transport
    "source_port": ["source_port", "src_port"],
    "destination_port": ["destination_port", "dest_port", "dst_port"],
    "protocol": ["protocol"],
}

# ---------------------------------------------------------------------------
# Field classes
# ---------------------------------------------------------------------------
TIMESTAMP_FIELDS = ["start_time", "end_time"]
NUMERIC_FIELDS = ["data_up", "data_down", "source_port", "destination_port"]

# Value-indexed fields (exact-match lookups go through a bucket per value)
INDEXED_FIELDS = [
    "msisdn", "called_msisdn", "imei", "imsi",
    "source_ip", "destination_ip", "cell_id",
]

# Entity extraction for the link graph: field → entity kind (order matters,
# it fixes node first-seen order within a record)
ENTITY_FIELDS = [
    ("msisdn", "msisdn"),
    ("called_msisdn", "msisdn"),
    ("imei", "imei"),
    ("source_ip", "ip"),
    ("destination_ip", "ip"),
    ("cell_id", "cell"),
]

# Column order for table/Excel output
DISPLAY_ORDER = [
    "msisdn", "called_msisdn", "imei", "imsi",
    "source_ip", "source_port", "destination_ip", "destination_port", "protocol",
    "start_time", "end_time", "data_up", "data_down", "cell_id",
]

# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------
DEFAULT_BUCKET = "1h"
MAX_TIMELINE_BUCKETS = 10_000
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1_000
DEFAULT_TOP_N = 10
MAX_UPLOAD_BYTES = int(os.environ.get("IPDR_MAX_UPLOAD_MB", "512")) * 1024 * 1024

UPLOAD_EXTENSIONS = (".csv", ".csv.gz", ".txt", ".xlsx")
EXCEL_MAX_ROWS = 1_000_000
EXPORT_BUCKETS = ["1h", "1D", "7D"]

# Optional file to index at server startup
PRELOAD_FILE = os.environ.get("IPDR_DATA_FILE")
