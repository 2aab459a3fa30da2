"""Constants for azure-upload-provider."""

# Plugin identity
PROVIDER_NAME = "azure"
DISPLAY_NAME = "Azure Storage Service"

# Azure public cloud service root
SERVICE_URL_TEMPLATE = "https://{account}.blob.core.windows.net"
# Service root for the in-memory store when no account is configured
MEMORY_SERVICE_URL = "memory://blobs"

# Transfer tuning
BLOCK_SIZE = 4 * 1024 * 1024  # 4MB block size
DEFAULT_MAX_CONCURRENT = 20
TRANSFER_TIMEOUT_SECONDS = 60 * 60

# Thumbnails
THUMBNAIL_PREFIX = "thumb-"
DEFAULT_MAX_WIDTH = 48
THUMBNAIL_QUALITY = 80

MIME_PNG = "image/png"
MIME_JPEG = "image/jpeg"
MIME_BMP = "image/bmp"
IMAGE_MIME_TYPES = frozenset({MIME_PNG, MIME_JPEG, MIME_BMP})

# Environment fallbacks for credentials
ACCOUNT_ENV_VAR = "AZURE_STORAGE_ACCOUNT"
ACCOUNT_KEY_ENV_VAR = "AZURE_STORAGE_KEY"
