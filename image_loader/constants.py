"""
Image Loader Constants

Fixed policy values shared by the cacher, the storage adapters and the
configuration layer.
"""

# ============================================
# Cache policy
# ============================================

# Entries older than this are removed by the sweep that follows every save
SEVEN_DAYS = 7 * 24 * 60 * 60

# Rows deleted per statement during a sweep
DEFAULT_SWEEP_BATCH_SIZE = 500


# ============================================
# Store location
# ============================================

DEFAULT_CACHE_DIR = "./image_cache"
DEFAULT_DB_FILENAME = "image-cache.sqlite"


# ============================================
# Logging
# ============================================

# URLs are truncated to this many characters in log lines
LOG_URL_CHARS = 60
