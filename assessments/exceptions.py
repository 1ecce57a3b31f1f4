"""
Error taxonomy of the exam attempt engine.

Raised by the question bank, the attempt store, scoring, review and grading,
and mapped onto HTTP responses by ``institute_platform.exceptions``.
"""


class ExamEngineError(Exception):
    status_code = 500
    default_detail = "Exam engine error."

    def __init__(self, detail=None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(ExamEngineError):
    status_code = 404
    default_detail = "Not found."


class Conflict(ExamEngineError):
    status_code = 409
    default_detail = "The attempt is not in a state that allows this."


class ValidationError(ExamEngineError):
    status_code = 400
    default_detail = "Invalid answer payload."


class Forbidden(ExamEngineError):
    status_code = 403
    default_detail = "Not authorized."
