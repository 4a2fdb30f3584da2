from .app import UploadTooLargeError, create_app

__all__ = [
    "UploadTooLargeError",
    "create_app",
]
