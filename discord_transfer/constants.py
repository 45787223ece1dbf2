"""Constants shared across the Discord transfer tool."""

# Discord REST API
API_BASE_URL = "https://discord.com/api/v10"
CDN_BASE_URL = "https://cdn.discordapp.com"
PROJECT_URL = "https://github.com/BilliAlpha/discord-transfer"
TOKEN_ENV_VAR = "DISCORD_TOKEN"

# Snowflakes: milliseconds since 2015-01-01T00:00:00Z in the upper 42 bits
DISCORD_EPOCH_MS = 1420070400000
SNOWFLAKE_TIMESTAMP_SHIFT = 22

# Channel types
CHANNEL_TYPE_TEXT = 0
CHANNEL_TYPE_VOICE = 2
CHANNEL_TYPE_CATEGORY = 4

# Message types that carry user content
MESSAGE_TYPE_DEFAULT = 0
MESSAGE_TYPE_REPLY = 19
REPLAYABLE_MESSAGE_TYPES = frozenset({MESSAGE_TYPE_DEFAULT, MESSAGE_TYPE_REPLY})

# Paging
MESSAGES_PAGE_SIZE = 100

# Role mention token, e.g. <@&123456789>
ROLE_MENTION_PATTERN = r"<@&\d+>"

# Default marker: U+1F504 ANTICLOCKWISE DOWNWARDS AND UPWARDS OPEN CIRCLE ARROWS
DEFAULT_MARKER_SHORTCODE = ":counterclockwise_arrows_button:"

# HTTP status codes
HTTP_NO_CONTENT = 204
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_RATE_LIMIT = 429
HTTP_SERVER_ERROR_MIN = 500

# Retry
MAX_BACKOFF_SECONDS = 60
BACKOFF_FACTOR = 2.0
