class StorageError(Exception):
    """Base class for expected storage outcomes that map to a client error."""
    status_code = 400
    message = "Bad request"

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)


class NotFoundError(StorageError):
    status_code = 404
    message = "Not found"


class ConflictError(StorageError):
    status_code = 409
    message = "Conflict"
