"""Error taxonomy for the classification pipeline.

Every failure of a single classifier call is a ``ClassifierError`` carrying the
classifier id and, where the vendor sent one, the ``x-request-id`` correlation
identifier. The worker logs these once, at the point where the invocation is
abandoned.
"""

from __future__ import annotations


class ClassifyXError(Exception):
    """Base class for all ClassifyX errors."""


class SourceCorruptError(ClassifyXError):
    """The source asset is missing or empty."""


class InvalidRequestError(ClassifyXError, ValueError):
    """The job configuration cannot form a valid classification request."""


class ClassifierError(ClassifyXError):
    """A single classifier call did not produce a usable feature set."""

    def __init__(self, message: str, *, classifier_id: str | None = None, request_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.classifier_id = classifier_id
        self.request_id = request_id

    def attribute(self, classifier_id: str, request_id: str | None = None) -> ClassifierError:
        """Attach the classifier id (and correlation id) if not already set."""
        if self.classifier_id is None:
            self.classifier_id = classifier_id
        if self.request_id is None:
            self.request_id = request_id
        return self

    def __str__(self) -> str:
        text = self.message
        if self.classifier_id is not None:
            text = f"classifier {self.classifier_id}: {text}"
        if self.request_id is not None:
            text = f"{text} (x-request-id: {self.request_id})"
        return text


class ClassifierCallError(ClassifierError):
    """The HTTP call failed: non-success status, transport error or timeout."""

    def __init__(
        self,
        message: str,
        *,
        classifier_id: str | None = None,
        status_code: int | None = None,
        request_id: str | None = None,
        vendor_message: str | None = None,
    ) -> None:
        super().__init__(message, classifier_id=classifier_id, request_id=request_id)
        self.status_code = status_code
        self.vendor_message = vendor_message


class MalformedResponseError(ClassifierError):
    """The call succeeded but its body could not be decoded."""


class InvalidFeatureError(ClassifierError):
    """A decoded feature value is outside its allowed range."""

    def __init__(self, field: str, value: object, *, classifier_id: str | None = None) -> None:
        super().__init__(f"invalid value for {field!r}: {value!r}", classifier_id=classifier_id)
        self.field = field
        self.value = value
