"""Shared constants across the application."""

# Batch sizes
DEFAULT_SYNC_BATCH_SIZE = 20
MIN_SYNC_BATCH_SIZE = 1
MAX_SYNC_BATCH_SIZE = 100

# Time windows (seconds unless noted)
RUN_STATE_TTL_SECONDS = 3600
VENDOR_TOKEN_TTL_SECONDS = 3600
NEXT_BATCH_COUNTDOWN_SECONDS = 1
LOG_RETENTION_DAYS = 30
STATISTICS_WINDOW_DAYS = 30

# Log listing
DEFAULT_LOGS_PER_PAGE = 20
MAX_LOGS_PER_PAGE = 100

# Redis keys
REDIS_KEY_PREFIX = "catalog_sync"
RUNNING_FLAG_KEY = f"{REDIS_KEY_PREFIX}:running"
RUN_STATE_KEY_TEMPLATE = f"{REDIS_KEY_PREFIX}:run:{{run_id}}"

# Catalog values
STOCK_STATUS_IN_STOCK = "instock"
STOCK_STATUS_OUT_OF_STOCK = "outofstock"
PRODUCT_STATUS_DRAFT = "draft"

# Error contexts stored alongside log error details
ERROR_CONTEXT_IMAGE = "image_download"
ERROR_CONTEXT_FATAL = "fatal_error"
ERROR_CONTEXT_CLIENT = "client_error"

# Image handling
VALID_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
}
IMAGE_DOWNLOAD_TIMEOUT = 60
