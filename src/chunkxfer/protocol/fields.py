"""Protocol constants.

Keep these in one place to avoid stringly-typed message handling.
"""

# Chunk reply body.
DATA = "data"
DATA_LENGTH = "dataLength"
HASH = "hash"

# Request body.
RESOURCE_ID = "_id"

# Error reply body.
MESSAGE = "message"

# Request/reply options.
MAXCHUNK = "maxchunk"
TIMEOUT = "timeout"
STATUS = "statusCode"

# Well-known address receiving diagnostic reports from handlers.
ERROR_ADDRESS = "error"
