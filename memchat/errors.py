"""Error taxonomy surfaced by the chat service"""


class MemchatError(Exception):
    """Base error for memchat"""

    status_code = 500
    public_message = "Internal Server Error"


class Unauthenticated(MemchatError):
    """No valid account for the request"""

    status_code = 401
    public_message = "Unauthorized"


class InternalError(MemchatError):
    """Unexpected failure before the response stream started"""

    status_code = 500
    public_message = "Chat request failed"


class ConversationAccessDenied(MemchatError):
    """Conversation id belongs to a different account"""

    status_code = 404
    public_message = "Conversation not found"


class DuplicateAccount(MemchatError):
    """An account with this email already exists"""

    status_code = 409
    public_message = "Account with this email already exists"
