"""
Shared constants used across the sync tool.
"""

# Service endpoints
JSON_API_URL = "https://json.ibroadcast.com/s/JSON/"
SYNC_URL = "https://sync.ibroadcast.com"

# Client identification sent with login and uploads
CLIENT_NAME = "python uploader script"
CLIENT_VERSION = ".1"
UPLOAD_METHOD = "python uploader"
USER_AGENT = "python uploader"

# Hash cache
CACHE_FILENAME = ".ibroadcast-md5cache.json"
HASH_HEX_WIDTH = 32  # MD5, 128 bits
HASH_READ_SIZE = 32 * 4096  # bytes

# Extensions the server reports but which are never uploaded: the server
# keeps treating playlists as changed, so they would be re-sent every run.
EXCLUDED_EXTENSIONS = [".m3u", ".m3u8", ".pls"]

# Upload settings
DEFAULT_PARALLEL_UPLOADS = 4
MAX_PARALLEL_UPLOADS = 8
HTTP_OK = 200

# Network Settings
DEFAULT_NETWORK_TIMEOUT = 30  # seconds
UPLOAD_READ_TIMEOUT = 600  # seconds

# Environment variables
ENV_EMAIL = "IBROADCAST_EMAIL"
ENV_PASSWORD = "IBROADCAST_PASSWORD"
