"""Root of the PersonaLens exception hierarchy."""


class PersonaLensError(Exception):
    """Base class for every error raised by the analysis pipeline."""
