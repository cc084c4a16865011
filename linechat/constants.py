# linechat wire constants (command keywords and server notices)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 9999
DEFAULT_MAX_CLIENTS = 100

# Command keywords (matched case-insensitively)
CMD_NICK = "/nick"
CMD_LIST = "/list"
CMD_PM = "/pm"
CMD_QUIT = "/quit"
CMD_HELP = "/help"

# Policy values
UNKNOWN_BROADCAST = "broadcast"
UNKNOWN_REJECT = "reject"

OUTBOX_DROP = "drop"
OUTBOX_DISCONNECT = "disconnect"

OVERFLOW_QUEUE = "queue"
OVERFLOW_REJECT = "reject"

# Server -> client notices
WELCOME = "Welcome to linechat!"
WELCOME_HINT = "Use /nick <name>, /pm <nick> <msg>, /list, /quit (/help for details)"

NICK_USAGE = "Usage: /nick <name>"
NICK_INVALID = "Invalid nickname (no spaces, at most {max_chars} characters)."
NICK_TAKEN = "Nickname already in use."
NICK_SET = "Nickname set to {nick}."
NICK_UNCHANGED = "You are already {nick}."

PM_USAGE = "Usage: /pm <nick> <message>"
PM_FORMAT = "(PM) {sender}: {body}"
USER_NOT_FOUND = "User not found: {nick}"

NEED_NICK = "Set a nickname first with /nick <name>."

CHAT_FORMAT = "{sender}: {body}"

LIST_HEADER = "Online users:"
LIST_ITEM = "- {nick}"
LIST_END = "END"

JOINED = "*** {nick} joined the chat"
RENAMED = "*** {old} is now known as {new}"
LEFT = "*** {nick} left the chat"

FAREWELL = "Goodbye!"
SHUTTING_DOWN = "Server shutting down."
SERVER_BUSY = "Server busy, waiting for a free slot..."
SERVER_FULL = "Server full, try again later."

UNKNOWN_COMMAND = "Unknown command: {command}. Type /help for commands."

HELP_TEXT = """Commands:
  /nick <name>          set or change your nickname
  /list                 list online users
  /pm <nick> <message>  send a private message
  /help                 show this help
  /quit                 leave the chat
Anything else is sent to everyone."""
