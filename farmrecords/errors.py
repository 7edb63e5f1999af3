# farmrecords/errors.py


class FarmRecordsError(Exception):
    """Base class for errors raised by the record and report services."""


class RecordNotFoundError(FarmRecordsError):
    def __init__(self, collection: str, record_id: str, redirect: str = "/"):
        self.collection = collection
        self.record_id = record_id
        self.redirect = redirect
        super().__init__(f"{collection}/{record_id} not found")


class CsvImportError(FarmRecordsError):
    """The CSV file as a whole cannot be imported."""


class DateRangeError(FarmRecordsError, ValueError):
    pass
