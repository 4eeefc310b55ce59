class FileStoreError(Exception):
    """Base class."""


class ValidationError(FileStoreError):
    """Upload rejected before anything was written."""


class FileTooLargeError(ValidationError):
    pass


class UnsupportedFileTypeError(ValidationError):
    pass


class UnsupportedExtensionError(ValidationError):
    pass


class EmptyFileNameError(ValidationError):
    pass


class SignatureMismatchError(ValidationError):
    pass


class NotFoundError(FileStoreError):
    pass


class BlobMissingError(NotFoundError):
    """Row exists but its blob is gone from the upload directory."""


class DatabaseError(FileStoreError):
    pass


class StorageError(FileStoreError):
    pass
