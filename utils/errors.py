"""HTTP errors specific to this API, on top of Werkzeug's taxonomy."""

from werkzeug.exceptions import BadRequest, InternalServerError


class InvalidToken(BadRequest):
    """A token failed signature, format or purpose checks."""

    description = "Invalid token."


class ExpiredToken(InvalidToken):
    description = "Token has expired."


class MailDeliveryError(InternalServerError):
    """The SMTP server could not accept an outgoing message."""

    description = "Unable to send email at this time."


class StorageError(InternalServerError):
    """The blob store rejected an upload or delete."""

    description = "Unable to store the uploaded file."
