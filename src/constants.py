from __future__ import annotations

from datetime import timedelta

SERVER_NAME = "teamsgate"
SERVER_VERSION = "1.0.0"
SERVER_DESCRIPTION = "Microsoft Teams capability gateway - schema-described tools over JSON-RPC"
PROTOCOL_VERSION = "2024-11-05"

# Response id used when the request envelope could not be parsed (JSON-RPC null id).
UNKNOWN_REQUEST_ID = None

# A cached session is treated as expired this long before its real expiry.
SESSION_SAFETY_MARGIN = timedelta(minutes=5)

GRAPH_RESOURCE = "https://graph.microsoft.com"
GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"

# Microsoft Graph Command Line Tools public client.
DEFAULT_CLIENT_ID = "04b07795-8ddb-461a-bbee-02f9e1bf7b46"

DEFAULT_SCOPES: tuple[str, ...] = (
    "https://graph.microsoft.com/Team.ReadBasic.All",
    "https://graph.microsoft.com/TeamMember.ReadWrite.All",
    "https://graph.microsoft.com/Channel.ReadWrite.All",
    "https://graph.microsoft.com/ChannelMessage.Read.All",
    "https://graph.microsoft.com/Files.ReadWrite.All",
    "https://graph.microsoft.com/Calendars.ReadWrite",
    "https://graph.microsoft.com/Tasks.ReadWrite",
    "https://graph.microsoft.com/Presence.Read.All",
    "https://graph.microsoft.com/User.Read",
)

# Label prefixes that mark a platform vault entry as a Microsoft identity credential.
VAULT_LABEL_PREFIXES: tuple[str, ...] = ("Microsoft", "Azure", "Office", "Teams")
