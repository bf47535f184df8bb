"""Protocol constants for Corrade and Discord."""

# Corrade notification and command vocabulary
NOTIFICATION_TYPE_GROUP = "group"
RELAY_COMMAND = "tell"
TARGET_ENTITY_GROUP = "group"
STATUS_SUCCESS = "true"

# Sender Second Life uses for its own group notices (e.g. "no members online")
SYSTEM_SENDER: tuple[str, str] = ("Second", "Life")

# Tags appended to the sender in relayed text
SL_TAG = "SL"
DISCORD_TAG = "Discord"

DISCORD_TEXT_CHANNEL = "text"
DISCORD_MAX_MESSAGE_LEN = 2000
