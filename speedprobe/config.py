"""Constants and configuration for speedprobe."""

from speedprobe import __version__

# Default measurement settings
DEFAULT_TIMEOUT = 15.0       # Wall-clock deadline per transfer (seconds)
DEFAULT_UPLOAD_SIZE_MB = 30  # Upload payload size (MiB)
PROBE_TIMEOUT = 5.0          # Reachability probe timeout (seconds)
LOCATION_TIMEOUT = 10.0      # Geolocation lookup timeout (seconds)

# Server list
DEFAULT_SERVER_LIST = "speedtest_server_list.json"

# Speedtest endpoints on the target host
DOWNLOAD_PATH = "/speedtest/random4000x4000.jpg"
UPLOAD_PATH = "/speedtest/upload.php"

# Geolocation API
LOCATION_API_URL = "http://ip-api.com/json/"

# Upload payload fill byte (content is irrelevant, only size matters)
UPLOAD_FILL_BYTE = b"A"
UPLOAD_CHUNK_SIZE = 64 * 1024

# Progress is reported every MiB
MIB = 1024 * 1024
PROGRESS_STEP_BYTES = MIB

# User agent for HTTP requests
USER_AGENT = f"speedprobe/{__version__}"

# Selection tier display names
TIER_LABELS = {
    "exact": "city + country match",
    "country": "country match",
    "any": "any reachable server",
}

# Bandwidth color thresholds (Mbps)
FAST_THRESHOLD_MBPS = 100.0   # Green: >= 100 Mbps
MEDIUM_THRESHOLD_MBPS = 25.0  # Yellow: >= 25 Mbps
# Red: < 25 Mbps
