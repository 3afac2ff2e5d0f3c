# covid_odata/domain/odata/errors.py


class ODataError(Exception):
    """A request the OData layer refuses; rendered as an OData error body."""

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ResourceNotFound(ODataError):
    status_code = 404
