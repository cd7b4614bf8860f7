# Make `from counsel_intake.models import IntakeSession, Client` work
from .orm import (  # noqa: F401
    Organization,
    User,
    IntakeLink,
    IntakeSession,
    IntakeMessage,
    IntakeDocument,
    Client,
    Case,
    Notification,
)
from .extracted import ExtractedData, parse_extracted, dump_extracted  # noqa: F401
