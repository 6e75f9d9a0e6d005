class MathQuestError(Exception):
    """Base class for all Math Quest failures"""


class GenerationFailure(MathQuestError):
    """The text-generation collaborator produced no usable question"""


class AnalysisFailure(MathQuestError):
    """The text-generation collaborator produced no usable performance analysis"""


class HydrationError(MathQuestError):
    """Persisted session state could not be read or parsed"""


class ValidationError(MathQuestError):
    """User input is missing or unusable (e.g. submitting without an answer)"""


class SubmissionRejected(MathQuestError):
    """The current attempt cannot accept an answer"""
